"""
Encryption at rest for secrets kept in the app database (users' own model API keys).
"""
import functools
import logging
from typing import Optional
from cryptography.fernet import Fernet, InvalidToken

from sqlchat.core.config import settings
from sqlchat.core.exceptions import LLMConfigurationError

logger = logging.getLogger(__name__)


@functools.lru_cache(maxsize=1)
def get_cipher() -> Fernet:
    key = settings.ENCRYPTION_KEY
    if not key:
        key = Fernet.generate_key().decode()
        logger.warning("ENCRYPTION_KEY is not set - using a generated key, stored API keys will not survive a restart")
    return Fernet(key.encode())


def encrypt_secret(value: str) -> str:
    return get_cipher().encrypt(value.encode("utf-8")).decode("ascii")


def decrypt_secret(token: Optional[str]) -> Optional[str]:
    if not token:
        return None
    try:
        return get_cipher().decrypt(token.encode("ascii")).decode("utf-8")
    except InvalidToken as e:
        raise LLMConfigurationError("Stored API key could not be decrypted, please save it again") from e
