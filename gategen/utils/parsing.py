"""Response parsing and shared LLM utilities.

Model replies carry code in markdown fences. A fence opens with three
backticks plus an optional language hint on the same line and closes with
three backticks; a reply cut off mid-stream may never close its last fence.
Multi-file replies name each block with a first-line marker:

    // FILE: widget.h

Blocks without a marker are named by FILENAME_RULES, tried in order.
"""

import os
import re
import sys
from pathlib import PurePosixPath

import httpx
from tenacity import retry, stop_after_attempt, wait_exponential, retry_if_exception

from gategen.errors import ParseFailure
from gategen.state import CodeFile

FENCE = "```"
FILE_MARKER_TEMPLATE = "// FILE: {name}"
EXTRACTION_MODES = ("multi_file", "first_block")

# Opening fence: backticks and an optional word-like hint (cpp, c, c++, ...) ending
# the line. Prose such as "wrap it in ``` fences" does not open a block.
_FENCE_OPEN_RE = re.compile(r"```[\w+#.-]*[ \t]*\n")

_MARKER_RES = (
    re.compile(r"^//\s*FILE:\s*(\S+)"),
    re.compile(r"^/\*\s*FILE:\s*(\S+?)\s*\*/"),
)

_ENTRY_POINT_RE = re.compile(r"\bint\s+main\s*\(")
_PRAGMA_ONCE_RE = re.compile(r"#\s*pragma\s+once\b")
_INCLUDE_GUARD_RE = re.compile(r"#\s*ifndef\s+\w+_H(?:PP)?_?\b")
_TYPE_DECL_RE = re.compile(r"\b(?:class|struct)\s+([A-Za-z_]\w*)\s*(?:final\s*)?[:{;]")


def normalize_newlines(text: str) -> str:
    """Convert CRLF and lone CR line endings to LF."""
    return text.replace("\r\n", "\n").replace("\r", "\n")


def _find_fenced_bodies(text: str) -> list[str]:
    """Return the raw body of every fenced region, in source order."""
    bodies = []
    pos = 0
    while True:
        opening = _FENCE_OPEN_RE.search(text, pos)
        if not opening:
            break
        start = opening.end()
        end = text.find(FENCE, start)
        if end == -1:
            # Truncated response: the region runs to the end of input.
            bodies.append(text[start:])
            break
        bodies.append(text[start:end])
        pos = end + len(FENCE)
    return bodies


def _trim_body(body: str) -> str:
    """Drop the closing-fence line, then at most one leading and one trailing blank line."""
    lines = body.split("\n")
    if len(lines) > 1 and not lines[-1].strip():
        lines.pop()
    if lines and not lines[0].strip():
        lines.pop(0)
    if lines and not lines[-1].strip():
        lines.pop()
    return "\n".join(lines)


def is_safe_filename(name: str) -> bool:
    """True for a relative name that stays inside the workspace (no absolute path, no '..')."""
    path = PurePosixPath(name)
    return bool(name) and not path.is_absolute() and ".." not in path.parts


def detect_file_marker(body: str) -> str | None:
    """Return the file name declared on the first line of a block body, if any.

    A marker naming an absolute path or climbing out with '..' is ignored.
    """
    first_line = body.split("\n", 1)[0].strip()
    for pattern in _MARKER_RES:
        match = pattern.match(first_line)
        if match:
            name = match.group(1)
            return name if is_safe_filename(name) else None
    return None


def _strip_marker_line(body: str) -> str:
    return body.split("\n", 1)[1] if "\n" in body else ""


# --- Filename inference rules ---

def _header_rule(content: str, index: int) -> str | None:
    """Include guard / #pragma once, or a type declaration without main()."""
    type_decl = _TYPE_DECL_RE.search(content)
    guarded = _PRAGMA_ONCE_RE.search(content) or _INCLUDE_GUARD_RE.search(content)
    bare_type = type_decl and not _ENTRY_POINT_RE.search(content)
    if not (guarded or bare_type):
        return None
    if type_decl:
        return f"{type_decl.group(1).lower()}.h"
    return f"header{index}.h"


def _entry_point_rule(content: str, index: int) -> str | None:
    return "main.cpp" if _ENTRY_POINT_RE.search(content) else None


def _index_rule(content: str, index: int) -> str:
    return f"code{index}.cpp"


# First match wins. Append new heuristics before "index", never reorder.
FILENAME_RULES = (
    ("header", _header_rule),
    ("entry_point", _entry_point_rule),
    ("index", _index_rule),
)

# A lone block is not told apart from its siblings, so main() earns no special name.
_SINGLE_FILE_RULES = tuple(rule for rule in FILENAME_RULES if rule[0] != "entry_point")


def infer_filename(content: str, index: int, rules=FILENAME_RULES) -> str:
    """Name an unmarked block by the first matching rule."""
    for _name, rule in rules:
        filename = rule(content, index)
        if filename:
            return filename
    return _index_rule(content, index)


def _unique_name(name: str, taken: set[str], index: int) -> str:
    if name not in taken:
        return name
    stem, ext = os.path.splitext(name)
    suffix = index
    candidate = f"{stem}{suffix}{ext}"
    while candidate in taken:
        suffix += 1
        candidate = f"{stem}{suffix}{ext}"
    return candidate


def _resolve_mode(mode: str | None) -> str:
    if mode is None:
        from gategen.config import get_config

        mode = get_config().get("extraction_mode", "multi_file")
    if mode not in EXTRACTION_MODES:
        raise ValueError(f"Unknown extraction mode '{mode}'. Must be one of: {EXTRACTION_MODES}")
    return mode


def extract_files(text: str, mode: str | None = None) -> list[CodeFile]:
    """Extract the fenced code blocks of a model reply as named files.

    Args:
        text: Raw model output.
        mode: "multi_file" (every block becomes a file) or "first_block"
            (legacy: only the first block, verbatim). None uses config.

    Returns an empty list when the reply has no fenced block.
    """
    mode = _resolve_mode(mode)
    bodies = [_trim_body(b) for b in _find_fenced_bodies(normalize_newlines(text or ""))]
    if mode == "first_block":
        bodies = bodies[:1]

    if not bodies:
        return []

    if len(bodies) == 1:
        body = bodies[0]
        filename = detect_file_marker(body) or infer_filename(body, 0, _SINGLE_FILE_RULES)
        return [{"filename": filename, "content": body}]

    files: list[CodeFile] = []
    taken: set[str] = set()
    for index, body in enumerate(bodies):
        filename = detect_file_marker(body)
        if filename:
            content = _strip_marker_line(body)
        else:
            content = body
            filename = infer_filename(body, index)
        filename = _unique_name(filename, taken, index)
        taken.add(filename)
        files.append({"filename": filename, "content": content})
    return files


def join_files(files: list[CodeFile]) -> str:
    """Concatenate files behind FILE markers, one blank line apart."""
    return "\n\n".join(
        FILE_MARKER_TEMPLATE.format(name=f["filename"]) + "\n" + f["content"]
        for f in files
    )


def extract_code(text: str, mode: str | None = None) -> str:
    """Single-string form of extract_files.

    One block comes back verbatim; several are joined behind synthesized
    FILE markers. Returns "" when there is no fenced block.
    """
    files = extract_files(text, mode)
    if not files:
        return ""
    if len(files) == 1:
        return files[0]["content"]
    return join_files(files)


def is_multi_file_project(files: list[CodeFile]) -> bool:
    """True when the file set has two or more entries."""
    return len(files) >= 2


def parse_response(text: str, mode: str | None = None) -> list[CodeFile]:
    """extract_files for the generation loop: raises ParseFailure instead of returning []."""
    files = extract_files(text, mode)
    if not files:
        raise ParseFailure("The response contained no fenced code block.")
    return files


# --- LLM transport ---

def _is_transient(exc: BaseException) -> bool:
    """Return True if the exception is a transient HTTP/network error worth retrying."""
    if isinstance(exc, httpx.TimeoutException):
        return True
    if isinstance(exc, httpx.ConnectError):
        return True
    if isinstance(exc, httpx.HTTPStatusError):
        return exc.response.status_code in (429, 500, 502, 503)
    # Provider SDK errors (anthropic, google) expose the HTTP status directly.
    return getattr(exc, "status_code", None) in (429, 500, 502, 503)


def invoke_with_retry(llm, messages, max_retries: int = 2):
    """Call llm.invoke(messages) with exponential backoff on transient errors.

    Retries on HTTP 429/500/502/503, connection errors, and timeouts.
    Non-transient errors (auth failures, bad requests) are raised immediately.
    """
    from gategen.config import get_config

    config = get_config()
    retries = config.get("llm_max_retries", max_retries)

    @retry(
        stop=stop_after_attempt(retries + 1),  # +1 because first attempt counts
        wait=wait_exponential(multiplier=1, min=2, max=16),
        retry=retry_if_exception(_is_transient),
        reraise=True,
        before_sleep=lambda state: print(
            f"[gategen] Transient error: {state.outcome.exception()!r}. "
            f"Retrying in {state.next_action.sleep:.0f}s "
            f"(attempt {state.attempt_number}/{retries})...",
            file=sys.stderr,
        ),
    )
    def _invoke():
        return llm.invoke(messages)

    return _invoke()
