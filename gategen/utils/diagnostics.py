"""Pull anchored findings out of raw gate output.

Recognized shapes:
- clang / clang-tidy / compiler:  src/a.cpp:10:5: warning: message [check-name]
- cppcheck:                       [src/a.cpp:10]: (error) message
- sanitizer reports:              ==123==ERROR: AddressSanitizer: heap-buffer-overflow ...
                                  src/a.cpp:7:9: runtime error: signed integer overflow ...
                                  #0 0x4f in foo /src/a.cpp:7

Output with no recognized finding falls back to the raw text, capped at
MAX_RAW_LINES. Otherwise leftover lines are appended, capped at MAX_EXTRA_LINES.
"""

import re
from typing import TypedDict

MAX_RAW_LINES = 50
MAX_CONTEXT_FRAMES = 5
MAX_EXTRA_LINES = 20

_CLANG_RE = re.compile(
    r"^(?P<file>[^:\s][^:\n]*):(?P<line>\d+):(?P<col>\d+): (?P<level>error|warning|note): "
    r"(?P<message>.+?)(?:[ \t]+\[(?P<check>[^\]\n]+)\])?$",
    re.MULTILINE,
)
_CPPCHECK_RE = re.compile(
    r"^\[?(?P<file>[^:\]\s][^:\]\n]*):(?P<line>\d+)(?::(?P<col>\d+))?\]?: "
    r"\((?P<level>error|warning|style|performance|portability|information)\) (?P<message>.+)$",
    re.MULTILINE,
)
_UBSAN_RE = re.compile(r"^(?P<file>[^:\s][^:]*):(?P<line>\d+):(?P<col>\d+): runtime error: (?P<message>.+)$")
_STACK_FRAME_RE = re.compile(r"#\d+\s+\S+\s+in\s+(?P<func>\S+)\s+(?P<file>[^:\s]+):(?P<line>\d+)")
_FRAME_LINE_RE = re.compile(r"#\d+\s")
# "=====", "==123==ABORTING", "SUMMARY: ...", "2 warnings generated."
_NOISE_RE = re.compile(r"=+$|==\d+==|SUMMARY: |\d+ (?:warnings?|errors?)(?: and \d+ errors?)? generated\.$")
_SANITIZER_HEADERS = (
    "ERROR: AddressSanitizer: ",
    "ERROR: LeakSanitizer: ",
    "WARNING: MemorySanitizer: ",
    "WARNING: ThreadSanitizer: ",
)


class Diagnostic(TypedDict):
    file: str
    line: int
    column: int
    level: str
    message: str
    check: str
    context: list[str]


def _diag(file="", line=0, column=0, level="error", message="", check="") -> Diagnostic:
    return {
        "file": file,
        "line": line,
        "column": column,
        "level": level,
        "message": message,
        "check": check,
        "context": [],
    }


def parse_compiler_output(output: str) -> list[Diagnostic]:
    """Parse clang-style `file:line:col: level: message [check]` lines."""
    return [
        _diag(
            file=m["file"],
            line=int(m["line"]),
            column=int(m["col"]),
            level=m["level"],
            message=m["message"],
            check=m["check"] or "",
        )
        for m in _CLANG_RE.finditer(output)
    ]


def parse_cppcheck_output(output: str) -> list[Diagnostic]:
    """Parse cppcheck's bracketed template, falling back to the clang-style one."""
    diagnostics = [
        _diag(
            file=m["file"],
            line=int(m["line"]),
            column=int(m["col"] or 0),
            level="error" if m["level"] == "error" else "warning",
            message=m["message"],
            check=f"cppcheck-{m['level']}",
        )
        for m in _CPPCHECK_RE.finditer(output)
    ]
    return diagnostics or parse_compiler_output(output)


def _sanitizer_summary(line: str) -> str | None:
    for header in _SANITIZER_HEADERS:
        idx = line.find(header)
        if idx >= 0:
            message = line[idx + len(header):]
            # "heap-buffer-overflow on address 0x..." -> "heap-buffer-overflow"
            return message.split(" on address", 1)[0].strip()
    return None


def parse_sanitizer_output(output: str, sanitizer: str) -> list[Diagnostic]:
    """Parse sanitizer reports into one diagnostic per report, with stack locations as context."""
    diagnostics: list[Diagnostic] = []
    current: Diagnostic | None = None

    for raw in output.splitlines():
        line = raw.strip()
        if not line:
            continue

        summary = _sanitizer_summary(line)
        if summary is not None:
            current = _diag(message=summary, check=sanitizer)
            diagnostics.append(current)
            continue

        if "runtime error:" in line:
            match = _UBSAN_RE.match(line)
            if match:
                current = _diag(
                    file=match["file"],
                    line=int(match["line"]),
                    column=int(match["col"]),
                    message=match["message"],
                    check=sanitizer,
                )
            else:
                message = line.split("runtime error:", 1)[1].strip()
                current = _diag(message=message, check=sanitizer)
            diagnostics.append(current)
            continue

        if current is not None and line.startswith("#") and len(current["context"]) < MAX_CONTEXT_FRAMES:
            frame = _STACK_FRAME_RE.search(line)
            if frame:
                current["context"].append(f"{frame['func']} at {frame['file']}:{frame['line']}")

    return diagnostics


# Gate name -> parser. Gates not listed here are reported raw.
_PARSERS = {
    "static-analysis-pass-1": parse_compiler_output,
    "static-analysis-pass-2": parse_cppcheck_output,
    "compile": parse_compiler_output,
    "memory-error-sanitizer": lambda out: parse_sanitizer_output(out, "asan"),
    "undefined-behavior-sanitizer": lambda out: parse_sanitizer_output(out, "ubsan"),
    "uninitialized-read-sanitizer": lambda out: parse_sanitizer_output(out, "msan"),
    "thread-sanitizer": lambda out: parse_sanitizer_output(out, "tsan"),
}


def parse_gate_output(gate_name: str, output: str) -> list[Diagnostic]:
    parser = _PARSERS.get(gate_name)
    return parser(output) if parser else []


def format_diagnostic(d: Diagnostic) -> str:
    """One anchored line per diagnostic, followed by indented context."""
    anchor = ""
    if d["file"]:
        anchor = d["file"]
        if d["line"]:
            anchor += f":{d['line']}"
            if d["column"]:
                anchor += f":{d['column']}"
        anchor += ": "
    text = f"{anchor}{d['level']}: {d['message']}"
    if d["check"]:
        text += f" [{d['check']}]"
    for frame in d["context"]:
        text += f"\n    {frame}"
    return text


def _is_consumed(line: str) -> bool:
    """True for lines already represented by a parsed diagnostic, or pure noise."""
    return bool(
        not line
        or _CLANG_RE.match(line)
        or _CPPCHECK_RE.match(line)
        or "runtime error:" in line
        or _sanitizer_summary(line) is not None
        or _FRAME_LINE_RE.match(line)
        or _NOISE_RE.match(line)
    )


def _unparsed_lines(output: str) -> list[str]:
    lines = [raw.rstrip() for raw in output.splitlines() if not _is_consumed(raw.strip())]
    if len(lines) > MAX_EXTRA_LINES:
        lines = lines[:MAX_EXTRA_LINES] + [f"... (truncated, showing first {MAX_EXTRA_LINES} lines)"]
    return lines


def compact_diagnostics(gate_name: str, output: str) -> str:
    """Return the gate output as compact anchored diagnostics, or capped raw text.

    Lines no parser consumed (source/caret context, linker errors) follow
    the anchored diagnostics under "Other output:".
    """
    diagnostics = parse_gate_output(gate_name, output)
    if diagnostics:
        text = "\n".join(format_diagnostic(d) for d in diagnostics)
        extra = _unparsed_lines(output)
        if extra:
            text += "\nOther output:\n" + "\n".join(extra)
        return text

    lines = output.strip().splitlines()
    if len(lines) > MAX_RAW_LINES:
        lines = lines[:MAX_RAW_LINES] + [f"... (truncated, showing first {MAX_RAW_LINES} lines)"]
    return "\n".join(lines)
