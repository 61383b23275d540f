import logging
from langchain_core.runnables import RunnableConfig

from sqlchat.core.config import settings
from sqlchat.domain.prompts import build_generation_prompt
from sqlchat.domain.sql_security import clean_query
from sqlchat.workflow.state import GenerationState

logger = logging.getLogger(__name__)


def generate_sql_node(state: GenerationState, config: RunnableConfig = None) -> dict:
    """
    One call to the text-generation backend. From the second attempt on, the
    previous rejection reason is part of the prompt.
    """
    configurable = config.get("configurable", {}) if config else {}
    client = configurable["llm_client"]
    temperature = configurable.get("temperature", settings.TEMPERATURE_QUERY)

    prompt = build_generation_prompt(state["question"], state["schema"], state.get("last_error"))
    raw = client.complete(prompt, temperature=temperature)
    sql = clean_query(raw)
    logger.info("Generation attempt %d: %s", state.get("attempt", 0) + 1, sql)
    return {"candidate": sql}
