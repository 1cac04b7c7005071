"""LangGraph StateGraph definition for the generate-validate loop."""

from langgraph.graph import END, StateGraph

from gategen.agents.gatekeeper import validate_node
from gategen.agents.generator import generate_node
from gategen.gates.pipeline import first_failure
from gategen.policy import attempt_budget, extend_budget
from gategen.state import IterationState
from gategen.utils.feedback import compose


def _route_after_generation(state: IterationState) -> str:
    return "end" if state["status"] == "cancelled" else "validate"


def _route_after_validation(state: IterationState) -> str:
    """Conditional edge: decide next step after the validate node.

    Priority order:
    1. accepted or cancelled → end
    2. attempts_used reached the session budget → exhausted
    3. otherwise → feedback (critique, then generate again)
    """
    if state["status"] in ("accepted", "cancelled"):
        return "end"

    if state["attempts_used"] >= attempt_budget(state):
        return "exhausted"

    return "feedback"


def _critique(state: IterationState) -> str:
    """Critique of the latest attempt, addressed to the attempt that follows it."""
    if not state["history"]:
        return ""
    failing = first_failure(state["history"][-1]["gate_results"])
    if failing is None:
        return ""
    return compose(failing, attempt_index=state["attempts_used"])


def _compose_feedback(state: IterationState) -> dict:
    """Turn the failing gate of the latest attempt into the next generation's critique."""
    return {"feedback": _critique(state), "status": "awaiting_generation"}


def _set_exhausted(state: IterationState) -> dict:
    """Budget spent without a passing attempt.

    IMPOSSIBLE sessions end as infeasible. Everything else waits for a
    continue/abort decision; the critique is prepared so a continued session
    picks up where it stopped.
    """
    if state["tier"] == "IMPOSSIBLE":
        return {"status": "infeasible"}
    return {"status": "budget_exhausted", "feedback": _critique(state)}


# --- Build the graph ---

workflow = StateGraph(IterationState)

workflow.add_node("generate", generate_node)
workflow.add_node("validate", validate_node)
workflow.add_node("feedback", _compose_feedback)
workflow.add_node("exhausted", _set_exhausted)

workflow.set_entry_point("generate")

workflow.add_conditional_edges(
    "generate",
    _route_after_generation,
    {
        "end": END,
        "validate": "validate",
    },
)

workflow.add_conditional_edges(
    "validate",
    _route_after_validation,
    {
        "end": END,
        "exhausted": "exhausted",
        "feedback": "feedback",
    },
)

workflow.add_edge("feedback", "generate")
workflow.add_edge("exhausted", END)

graph = workflow.compile()


def run_graph(
    state: IterationState,
    generator=None,
    gate_backend=None,
    cancel_event=None,
    on_gate_result=None,
) -> IterationState:
    """Run the loop to a terminal status in one graph invocation.

    Collaborators left as None are built from config.yaml by the nodes.
    """
    remaining = attempt_budget(state) - state["attempts_used"]
    run_config = {
        "configurable": {
            "generator": generator,
            "gate_backend": gate_backend,
            "cancel_event": cancel_event,
            "on_gate_result": on_gate_result,
        },
        # generate + validate + feedback per attempt, plus the exit step.
        "recursion_limit": 3 * max(remaining, 1) + 5,
    }
    return graph.invoke(state, run_config)


# --- Step-execution helpers for HITL manual loop ---

_NODE_FNS = {
    "generate": generate_node,
    "validate": validate_node,
    "feedback": _compose_feedback,
    "exhausted": _set_exhausted,
}

# Nodes that read collaborators from the run config.
_CONFIGURABLE_NODES = {"generate", "validate"}


def run_single_step(state: IterationState, node_name: str, config: dict | None = None) -> IterationState:
    """Run a single node and return the updated state.

    Used by the CLI for manual step-by-step execution with HITL.
    """
    node_fn = _NODE_FNS[node_name]
    if node_name in _CONFIGURABLE_NODES:
        updates = node_fn(state, config)
    else:
        updates = node_fn(state)
    return {**state, **updates}


def needs_continue_decision(state: IterationState) -> bool:
    """True when the session stopped at budget exhaustion and may be extended."""
    return state["status"] == "budget_exhausted"


def continue_session(state: IterationState) -> IterationState:
    """Grant one more round of attempts after a "continue" decision."""
    return {**state, **extend_budget(state)}


def route_after_validation(state: IterationState) -> str:
    """Public wrapper around _route_after_validation for manual loop usage."""
    return _route_after_validation(state)
