"""Turns the failing gate of an attempt into a critique for the next call."""

from gategen.state import GateResult
from gategen.utils.diagnostics import compact_diagnostics

PARSE_GATE = "response-parse"

MINIMAL_CHANGE_INSTRUCTION = (
    "Make the smallest change that fixes the failure above. Do NOT rewrite the "
    "program: keep every part that is not implicated by the diagnostics exactly "
    "as it was, and return the complete corrected file(s) in fenced code blocks."
)

FENCING_INSTRUCTION = (
    "Your previous response contained no fenced code block. Respond with the "
    "complete source in ```cpp fenced blocks. For more than one file, start "
    "each block with a `// FILE: <name>` line."
)

# Gate-specific reminders appended after the diagnostics.
_GATE_HINTS = {
    "static-analysis-pass-1": "Replace banned or unsafe calls with the safe alternatives and fix the flagged checks.",
    "static-analysis-pass-2": "Fix the reported defects (null dereferences, leaks, out-of-bounds indices, unused values).",
    "header-hygiene": "Include exactly the headers each file uses; remove unused includes.",
    "compile": "Fix syntax errors, add missing includes, resolve type mismatches. Warnings are errors.",
    "memory-error-sanitizer": "Check array bounds, avoid use-after-free and leaks, prefer RAII and smart pointers.",
    "undefined-behavior-sanitizer": "Avoid signed overflow, null dereference, invalid shifts and misaligned access.",
    "uninitialized-read-sanitizer": "Initialize every variable, member and array at declaration (= 0, = {}, = nullptr).",
    "thread-sanitizer": "Protect shared data with std::mutex or std::atomic; join every thread.",
    "execute": "The program must run to completion and exit with status 0.",
}


def compose(gate_result: GateResult, attempt_index: int = 1) -> str:
    """Build the corrective instruction for the attempt numbered `attempt_index`.

    Args:
        gate_result: The single failing result that ended the previous attempt.
        attempt_index: 0-based index of the attempt that will receive the
            critique. Every attempt after the first gets the minimal-change
            instruction.
    """
    gate_name = gate_result["gate_name"]

    if gate_name == PARSE_GATE:
        parts = [FENCING_INSTRUCTION]
    else:
        diagnostics = compact_diagnostics(gate_name, gate_result.get("diagnostics", ""))
        parts = [f"Validation failed at gate: {gate_name}", ""]
        parts.append("Diagnostics:")
        parts.append(diagnostics or "(the gate reported no diagnostic output)")
        hint = _GATE_HINTS.get(gate_name)
        if hint:
            parts.append("")
            parts.append(f"Hint: {hint}")

    if attempt_index >= 1:
        parts.append("")
        parts.append(MINIMAL_CHANGE_INSTRUCTION)

    return "\n".join(parts)
