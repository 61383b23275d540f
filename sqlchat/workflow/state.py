import operator
from typing import Annotated, Any, List, Optional, TypedDict


class GenerationState(TypedDict):
    """
    State of the SQL generation loop.

    Attributes:
        question: the user's question
        schema: SchemaDocument the query must be written against
        attempt: number of rejected attempts so far
        max_retries: extra attempts allowed after the first
        candidate: cleaned SQL from the latest attempt
        accepted: whether the latest candidate passed the security gate
        last_error: rejection reason fed into the next prompt
        attempts: CandidateQuery history, appended once per attempt
    """
    question: str
    schema: Any
    attempt: int
    max_retries: int
    candidate: Optional[str]
    accepted: bool
    last_error: Optional[str]
    attempts: Annotated[List[dict], operator.add]
