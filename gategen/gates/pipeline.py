"""Gate pipeline — runs the validation gates against a file set, in order, failing fast.

A gate backend is any object with

    execute_gate(gate_name, files, timeout) -> (passed, diagnostics)

that raises GateTimeout when the call exceeds `timeout` and BackendUnavailable
when it cannot run at all.
"""

import re

from gategen.errors import AttemptCancelled, GateTimeout
from gategen.state import CodeFile, GateResult

STATIC_ANALYSIS_GATES = ("static-analysis-pass-1", "static-analysis-pass-2")
THREAD_SANITIZER_GATE = "thread-sanitizer"

GATE_ORDER = (
    "static-analysis-pass-1",
    "static-analysis-pass-2",
    "header-hygiene",
    "compile",
    "memory-error-sanitizer",
    "undefined-behavior-sanitizer",
    "uninitialized-read-sanitizer",
    "thread-sanitizer",
    "execute",
)

_CONCURRENCY_RE = re.compile(
    r"<thread>|<pthread\.h>|<mutex>|<future>|<atomic>|<condition_variable>"
    r"|std::(?:thread|jthread|mutex|atomic|async|future)\b"
    r"|\bpthread_(?:create|mutex)"
)


def uses_concurrency(files: list[CodeFile]) -> bool:
    """True when any file mentions a threading primitive."""
    return any(_CONCURRENCY_RE.search(f["content"]) for f in files)


def all_passed(results: list[GateResult]) -> bool:
    """True when a full run ended without a failing gate."""
    return bool(results) and all(r["passed"] for r in results)


def first_failure(results: list[GateResult]) -> GateResult | None:
    return next((r for r in results if not r["passed"]), None)


class GatePipelineRunner:
    """Executes GATE_ORDER against one file set. One instance serves a whole session."""

    def __init__(self, backend, timeout: float = 120, gates: tuple[str, ...] = GATE_ORDER, on_result=None):
        self.backend = backend
        self.timeout = timeout
        self.gates = gates
        self.on_result = on_result  # Optional callback(GateResult) for progress output.

    def _should_run(self, gate_name: str, session_context: dict) -> bool:
        if gate_name == THREAD_SANITIZER_GATE:
            return session_context.get("concurrency_detected", False)
        return True

    def _execute(self, gate_name: str, files: list[CodeFile]) -> GateResult:
        try:
            passed, diagnostics = self.backend.execute_gate(gate_name, files, self.timeout)
        except GateTimeout as exc:
            return {"gate_name": gate_name, "passed": False, "diagnostics": str(exc)}
        return {"gate_name": gate_name, "passed": bool(passed), "diagnostics": diagnostics or ""}

    def run(self, files: list[CodeFile], session_context: dict | None = None) -> list[GateResult]:
        """Run the gates in order and stop at the first failure.

        `session_context` is read for "cancel_event" (threading.Event) and
        written with "concurrency_detected" by the static-analysis passes.
        Raises AttemptCancelled if the cancel event is set before a gate starts.
        """
        context = session_context if session_context is not None else {}
        cancel_event = context.get("cancel_event")
        results: list[GateResult] = []

        for gate_name in self.gates:
            if cancel_event is not None and cancel_event.is_set():
                raise AttemptCancelled(f"Attempt cancelled before gate {gate_name}")
            if not self._should_run(gate_name, context):
                continue

            result = self._execute(gate_name, files)
            if gate_name in STATIC_ANALYSIS_GATES:
                context["concurrency_detected"] = (
                    context.get("concurrency_detected", False) or uses_concurrency(files)
                )
            results.append(result)
            if self.on_result is not None:
                self.on_result(result)
            if not result["passed"]:
                break

        return results
