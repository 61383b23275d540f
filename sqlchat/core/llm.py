import functools
import logging
from typing import Callable, Iterator, Optional
import openai
from langchain_openai import ChatOpenAI
from langchain_core.language_models import BaseChatModel
from langchain_core.messages import HumanMessage, SystemMessage

from sqlchat.core.config import settings
from sqlchat.core.exceptions import (
    GenerationTimeoutError,
    LLMBackendError,
    LLMConfigurationError,
)
from sqlchat.core.security import decrypt_secret

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You are an expert SQL assistant. You translate questions into read-only SQL "
    "and explain query results clearly and concisely."
)


@functools.lru_cache(maxsize=32)
def _build_chat_model(model: str, api_key: str, api_base: str, temperature: float) -> BaseChatModel:
    return ChatOpenAI(
        model=model,
        temperature=temperature,
        openai_api_key=api_key,
        openai_api_base=api_base,
        max_tokens=settings.MAX_TOKENS,
        timeout=settings.LLM_TIMEOUT,
        max_retries=0,
    )


def get_llm(ai_settings=None, temperature: float = 0.0) -> BaseChatModel:
    """
    Chat model for a user's AI settings.
    The demo provider runs on the platform key, the others on the user's own key.
    """
    provider = (getattr(ai_settings, "provider", None) or "demo").lower()

    if provider == "demo":
        if not settings.DEMO_API_KEY:
            raise LLMConfigurationError("Demo mode is not configured on this server")
        return _build_chat_model(settings.DEMO_MODEL, settings.DEMO_API_KEY, settings.DEMO_API_BASE, temperature)

    api_key = decrypt_secret(getattr(ai_settings, "api_key_encrypted", None))
    if not api_key:
        raise LLMConfigurationError(f"No API key configured for provider '{provider}'")

    if provider == "openai":
        model = ai_settings.model or settings.OPENAI_MODEL_NAME
        return _build_chat_model(model, api_key, settings.OPENAI_API_BASE, temperature)
    if provider == "claude":
        model = ai_settings.model or settings.ANTHROPIC_MODEL_NAME
        return _build_chat_model(model, api_key, settings.ANTHROPIC_API_BASE, temperature)

    raise LLMConfigurationError(f"Unknown AI provider: {provider}")


def _translate(e: Exception) -> Exception:
    if isinstance(e, openai.APITimeoutError):
        return GenerationTimeoutError("AI API request timed out")
    if isinstance(e, openai.AuthenticationError):
        return LLMBackendError("AI API authentication failed - check API key", 401)
    if isinstance(e, openai.RateLimitError):
        return LLMBackendError("AI API rate limit exceeded - please try again later", 429)
    if isinstance(e, openai.APIStatusError):
        if e.status_code >= 500:
            return LLMBackendError(f"AI API server error ({e.status_code})", e.status_code)
        return LLMBackendError(f"AI API client error ({e.status_code}): {e.message}", e.status_code)
    if isinstance(e, openai.APIConnectionError):
        return LLMBackendError(f"Could not reach AI API: {e}")
    return e


class TextGenerationClient:
    """
    Thin wrapper over a LangChain chat model: one system message, one user
    message, plain text back. Backend failures come out as LLMBackendError or
    GenerationTimeoutError.
    """
    def __init__(self, ai_settings=None, llm_factory: Optional[Callable[[float], BaseChatModel]] = None):
        self.ai_settings = ai_settings
        self._llm_factory = llm_factory or (lambda temperature: get_llm(ai_settings, temperature))

    def _messages(self, prompt: str, system_prompt: str):
        return [SystemMessage(content=system_prompt), HumanMessage(content=prompt)]

    def complete(self, prompt: str, temperature: float, system_prompt: str = SYSTEM_PROMPT) -> str:
        llm = self._llm_factory(temperature)
        try:
            response = llm.invoke(self._messages(prompt, system_prompt))
        except Exception as e:
            translated = _translate(e)
            if translated is e:
                raise
            raise translated from e

        content = response.content if isinstance(response.content, str) else str(response.content)
        if not content or not content.strip():
            raise LLMBackendError("Empty response from AI API")
        return content

    def stream(self, prompt: str, temperature: float, system_prompt: str = SYSTEM_PROMPT) -> Iterator[str]:
        """Yield non-empty text fragments as the backend produces them."""
        llm = self._llm_factory(temperature)
        try:
            for chunk in llm.stream(self._messages(prompt, system_prompt)):
                text = chunk.content if isinstance(chunk.content, str) else ""
                if text:
                    yield text
        except Exception as e:
            translated = _translate(e)
            if translated is e:
                raise
            raise translated from e
