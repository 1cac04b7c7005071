"""Output formatter — saves accepted files and renders session reports."""

from pathlib import Path, PurePosixPath

from gategen.config import get_config
from gategen.gates.pipeline import first_failure
from gategen.state import CodeFile, IterationState
from gategen.utils.parsing import is_safe_filename


def _output_dir(output_dir: str | Path | None) -> Path:
    if output_dir is not None:
        return Path(output_dir)
    configured = Path(get_config().get("output_dir", "./output"))
    if configured.is_absolute():
        return configured
    return Path.cwd() / configured


def _free_path(path: Path) -> Path:
    """Find a non-conflicting path: name.cpp, name (2).cpp, name (3).cpp, ..."""
    candidate = path
    counter = 1
    while candidate.exists():
        counter += 1
        candidate = path.with_name(f"{path.stem} ({counter}){path.suffix}")
    return candidate


def write_files(files: list[CodeFile], output_dir: str | Path | None = None) -> list[Path]:
    """Write accepted files under the output directory without overwriting anything.

    Returns the written paths in file order.
    """
    root = _output_dir(output_dir)
    written = []
    for f in files:
        if not is_safe_filename(f["filename"]):
            raise ValueError(f"Refusing to write outside the output directory: {f['filename']}")
        target = _free_path(root.joinpath(*PurePosixPath(f["filename"]).parts))
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(f["content"], encoding="utf-8")
        written.append(target)
    return written


def tiers_tried(state: IterationState) -> list[str]:
    """Model tiers of the recorded attempts, consecutive repeats collapsed."""
    tiers: list[str] = []
    for attempt in state["history"]:
        if not tiers or tiers[-1] != attempt["model_tier"]:
            tiers.append(attempt["model_tier"])
    return tiers


def render_summary(state: IterationState) -> str:
    """One-screen summary of a finished session."""
    lines = [
        f"Status: {state['status']}",
        f"Difficulty: {state['tier']}",
        f"Attempts: {state['attempts_used']}",
    ]
    if state["history"]:
        lines.append(f"Model tiers: {' -> '.join(tiers_tried(state))}")
    return "\n".join(lines)


def render_failure_report(state: IterationState) -> str:
    """Explain why a session ended without accepted code.

    Always names the model tiers tried and quotes the raw diagnostics of the
    last attempt's failing gate.
    """
    lines = []
    status = state["status"]
    if status == "infeasible":
        lines.append("This request could not be implemented safely as asked.")
    elif status == "budget_exhausted":
        lines.append(f"No attempt passed validation within {state['attempts_used']} attempts.")
    elif status == "cancelled":
        lines.append("The session was cancelled.")
    else:
        lines.append(f"Session ended with status '{status}'.")

    lines.append(f"Model tiers tried: {' -> '.join(tiers_tried(state)) or '(none)'}")

    if state["history"]:
        last = state["history"][-1]
        failing = first_failure(last["gate_results"])
        if failing is not None:
            lines.append("")
            lines.append(f"Last attempt (#{last['index'] + 1}) failed at gate: {failing['gate_name']}")
            lines.append("")
            lines.append(failing["diagnostics"] or "(no diagnostic output)")

    return "\n".join(lines)
