"""Entry point: validates input, classifies difficulty, runs the loop, saves accepted files."""

import sys
import threading
from pathlib import Path

from gategen.agents.generator import LLMGenerator
from gategen.config import get_config
from gategen.errors import BackendUnavailable, format_user_error
from gategen.gates.container import ContainerGateBackend
from gategen.gates.pipeline import GatePipelineRunner, all_passed
from gategen.graph import (
    continue_session,
    needs_continue_decision,
    route_after_validation,
    run_graph,
    run_single_step,
)
from gategen.policy import current_model_tier, new_session
from gategen.state import GateResult, IterationState
from gategen.utils.difficulty import parse_difficulty
from gategen.utils.formatter import render_failure_report, render_summary, write_files
from gategen.utils.validator import validate_input

ABORT_ANSWERS = {"n", "no", "abort", "cancel"}


def _print_gate_result(result: GateResult) -> None:
    mark = "PASS" if result["passed"] else "FAIL"
    print(f"[gategen]   {mark}  {result['gate_name']}")


def _confirm(tier: str) -> str | None:
    """Ask the user to confirm a non-trivial request.

    Returns "" to proceed as-is, extra clarification text to append to the
    prompt, or None to abort.
    """
    answer = input(f"[gategen] Difficulty {tier}. Proceed? [Y/n, or type a clarification]: ").strip()
    if answer.lower() in ABORT_ANSWERS:
        return None
    if answer.lower() in ("", "y", "yes"):
        return ""
    return answer


def _ask_continue(state: IterationState) -> bool:
    answer = input(
        f"[gategen] No passing attempt after {state['attempts_used']} attempts. "
        f"Continue with {state['max_attempts']} more? [y/N]: "
    ).strip().lower()
    return answer in ("y", "yes")


def _run_manual(state: IterationState, run_config: dict) -> IterationState:
    """Step-by-step loop with progress output and the continue prompt."""
    cancel_event = run_config["configurable"]["cancel_event"]
    while True:
        print(
            f"[gategen] Attempt {state['attempts_used'] + 1}/{state['max_attempts'] * state['rounds']} "
            f"({current_model_tier(state)})"
        )
        try:
            state = run_single_step(state, "generate", run_config)
            if state["status"] == "cancelled":
                break
            state = run_single_step(state, "validate", run_config)
        except KeyboardInterrupt:
            cancel_event.set()
            state = {**state, "status": "cancelled"}
            break

        route = route_after_validation(state)
        if route == "end":
            break
        if route == "exhausted":
            state = run_single_step(state, "exhausted")
            if needs_continue_decision(state) and _ask_continue(state):
                state = continue_session(state)
                continue
            break

        state = run_single_step(state, "feedback")

    return state


def run(prompt: str, hitl: bool | None = None, generator=None, gate_backend=None) -> IterationState | None:
    """Run the full generate-validate loop on a request.

    Args:
        prompt: The user's request.
        hitl: Override for HITL. None uses config default.
        generator: Generation backend; defaults to LLMGenerator.
        gate_backend: Gate execution backend; defaults to ContainerGateBackend.

    Returns the final state, or None if the user aborted at confirmation.
    """
    config = get_config()
    hitl_enabled = hitl if hitl is not None else config.get("hitl_enabled", True)
    validated = validate_input(prompt)

    generator = generator or LLMGenerator(config)
    gate_backend = gate_backend or ContainerGateBackend.from_config(config)

    tier, analysis = parse_difficulty(generator.reflect(validated))
    if analysis:
        print(analysis)
    print(f"[gategen] Difficulty: {tier}")

    if hitl_enabled and tier != "EASY":
        clarification = _confirm(tier)
        if clarification is None:
            print("[gategen] Aborted.")
            return None
        if clarification:
            validated += f"\n\nClarification: {clarification}"

    state = new_session(validated, tier)
    cancel_event = threading.Event()

    if not hitl_enabled:
        final_state = run_graph(
            state,
            generator=generator,
            gate_backend=gate_backend,
            cancel_event=cancel_event,
            on_gate_result=_print_gate_result,
        )
    else:
        run_config = {
            "configurable": {
                "generator": generator,
                "gate_backend": gate_backend,
                "cancel_event": cancel_event,
                "on_gate_result": _print_gate_result,
            }
        }
        final_state = _run_manual(state, run_config)

    print(render_summary(final_state))
    if final_state["status"] == "accepted":
        paths = write_files(final_state["history"][-1]["files"])
        for path in paths:
            print(f"[gategen] Saved to: {path}")
    else:
        print(render_failure_report(final_state))

    return final_state


def validate_files(paths: list[str], gate_backend=None) -> bool:
    """Run the gate pipeline on existing files without generation. Returns True if all gates pass."""
    config = get_config()
    files = [
        {"filename": Path(p).name, "content": Path(p).read_text(encoding="utf-8")}
        for p in paths
    ]
    gate_backend = gate_backend or ContainerGateBackend.from_config(config)
    runner = GatePipelineRunner(
        gate_backend,
        timeout=config.get("gate_timeout_seconds", 120),
        on_result=_print_gate_result,
    )
    results = runner.run(files)
    passed = all_passed(results)
    print(f"[gategen] {'All gates passed.' if passed else 'Validation failed.'}")
    if not passed:
        print(results[-1]["diagnostics"])
    return passed


def main() -> None:
    """CLI entry point: accepts the request as arguments or from stdin."""
    hitl = None
    args = sys.argv[1:]

    if "--no-hitl" in args:
        hitl = False
        args.remove("--no-hitl")

    try:
        if "--validate" in args:
            args.remove("--validate")
            if not args:
                print("Usage: gategen --validate FILE...", file=sys.stderr)
                sys.exit(2)
            sys.exit(0 if validate_files(args) else 1)

        if args:
            prompt = " ".join(args)
        else:
            print("Enter your request (Ctrl+D / Ctrl+Z to submit):")
            prompt = sys.stdin.read()

        final_state = run(prompt, hitl=hitl)
    except (BackendUnavailable, ValueError, OSError) as exc:
        print(format_user_error(exc), file=sys.stderr)
        sys.exit(1)

    if final_state is None or final_state["status"] != "accepted":
        sys.exit(1)


if __name__ == "__main__":
    main()
