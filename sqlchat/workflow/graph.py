from langgraph.graph import StateGraph, START, END

from sqlchat.workflow.state import GenerationState
from sqlchat.workflow.nodes.generate import generate_sql_node
from sqlchat.workflow.nodes.validate import validate_sql_node


def route_after_validation(state: GenerationState) -> str:
    """Accepted -> done; rejected with attempts left -> regenerate; otherwise exhausted."""
    if state.get("accepted"):
        return "accepted"
    if state.get("attempt", 0) > state.get("max_retries", 0):
        return "exhausted"
    return "retry"


def create_generation_graph():
    """
    Bounded generate/validate loop:
    GenerateSQL -> ValidateSQL -> (GenerateSQL | END)
    """
    workflow = StateGraph(GenerationState)

    workflow.add_node("GenerateSQL", generate_sql_node)
    workflow.add_node("ValidateSQL", validate_sql_node)

    workflow.add_edge(START, "GenerateSQL")
    workflow.add_edge("GenerateSQL", "ValidateSQL")
    workflow.add_conditional_edges(
        "ValidateSQL",
        route_after_validation,
        {
            "accepted": END,
            "retry": "GenerateSQL",
            "exhausted": END,
        }
    )

    return workflow.compile()
