"""Gatekeeper: extracts the files of the latest response and runs them through the gates.

Every completed validation appends exactly one Attempt to the history. A
reply without fenced code is an attempt too: it fails at the
"response-parse" pseudo-gate and consumes one unit of budget.
"""

from langchain_core.runnables import RunnableConfig

from gategen.config import get_config, run_option
from gategen.errors import AttemptCancelled, ParseFailure
from gategen.gates.container import ContainerGateBackend
from gategen.gates.pipeline import GatePipelineRunner, all_passed
from gategen.policy import current_model_tier
from gategen.state import Attempt, IterationState
from gategen.utils.feedback import PARSE_GATE
from gategen.utils.parsing import parse_response


def _runner(config: RunnableConfig | None) -> GatePipelineRunner:
    settings = get_config()
    backend = run_option(config, "gate_backend") or ContainerGateBackend.from_config(settings)
    return GatePipelineRunner(
        backend,
        timeout=settings.get("gate_timeout_seconds", 120),
        on_result=run_option(config, "on_gate_result"),
    )


def validate_node(state: IterationState, config: RunnableConfig) -> dict:
    """Validate node for the LangGraph StateGraph.

    Returns the new history (old history + this attempt), the incremented
    attempt counter, and status "accepted" when every gate passed. A
    cancelled attempt is discarded: nothing is recorded and the status
    becomes "cancelled".
    """
    index = state["attempts_used"]
    model_tier = current_model_tier(state)

    try:
        files = parse_response(state["raw_response"])
    except ParseFailure as exc:
        files = []
        results = [{"gate_name": PARSE_GATE, "passed": False, "diagnostics": str(exc)}]
    else:
        context = {"cancel_event": run_option(config, "cancel_event")}
        try:
            results = _runner(config).run(files, context)
        except AttemptCancelled:
            return {"status": "cancelled"}

    passed = all_passed(results)
    attempt: Attempt = {
        "index": index,
        "model_tier": model_tier,
        "files": files,
        "gate_results": results,
        "outcome": "passed" if passed else "failed",
    }

    return {
        "history": state["history"] + [attempt],
        "attempts_used": index + 1,
        "status": "accepted" if passed else "awaiting_generation",
    }
