from typing import Any, Dict, Iterator, List, Optional

from sqlchat.core.config import settings
from sqlchat.domain.prompts import build_answer_prompt


def clean_answer(answer: str) -> str:
    text = (answer or "").strip()
    if len(text) >= 2 and text[0] == text[-1] and text[0] in ("\"", "'"):
        text = text[1:-1].strip()
    return text


class AnswerSynthesizer:
    """Turns question + SQL + rows into prose, in one call or as a stream."""

    def __init__(self, llm_client, row_cap: Optional[int] = None):
        self.llm_client = llm_client
        self.row_cap = settings.RESULT_ROW_CAP if row_cap is None else row_cap

    def _prompt(self, question: str, sql: str, rows: List[Dict[str, Any]], total: Optional[int]) -> str:
        return build_answer_prompt(question, sql, rows, total=total, cap=self.row_cap)

    def synthesize(self, question: str, sql: str, rows: List[Dict[str, Any]], total: Optional[int] = None) -> str:
        prompt = self._prompt(question, sql, rows, total)
        return clean_answer(self.llm_client.complete(prompt, temperature=settings.TEMPERATURE_ANSWER))

    def stream(self, question: str, sql: str, rows: List[Dict[str, Any]],
               total: Optional[int] = None) -> Iterator[str]:
        """
        Finite, single-use sequence of non-empty text fragments.
        """
        prompt = self._prompt(question, sql, rows, total)
        for fragment in self.llm_client.stream(prompt, temperature=settings.TEMPERATURE_ANSWER):
            if fragment:
                yield fragment
