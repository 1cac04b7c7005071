"""Error taxonomy for the generate-validate loop.

Only BackendUnavailable and AttemptCancelled ever leave the loop. ParseFailure
and GateTimeout are folded into failed attempts by the nodes that catch them.
"""


class GategenError(Exception):
    """Base class for gategen errors."""


class ParseFailure(GategenError):
    """A model response contained no fenced code block."""


class GateTimeout(GategenError):
    """A gate call exceeded its time limit."""

    def __init__(self, gate_name: str, timeout: float):
        self.gate_name = gate_name
        self.timeout = timeout
        super().__init__(f"{gate_name} timed out after {timeout:g}s")


class BackendUnavailable(GategenError):
    """The generation or gate-execution backend could not be reached."""


class AttemptCancelled(GategenError):
    """The running attempt was cancelled; its partial results are discarded."""


# Substring patterns (lowercased) -> suggestion shown under the error.
_SUGGESTIONS = [
    (("api key", "api_key", "authentication", "unauthorized", "401"),
     "Check ANTHROPIC_API_KEY / GOOGLE_API_KEY in your environment or .env file."),
    (("rate limit", "429", "throttl"),
     "You're being rate-limited. Wait a moment and try again."),
    (("no container runtime",),
     "Install podman (recommended) or docker and make sure it is on PATH."),
    (("permission denied",),
     "Run with sufficient permissions, or add your user to the docker group."),
    (("daemon", "socket"),
     "The container daemon may not be running. Start the docker/podman service."),
    (("timed out", "timeout"),
     "The operation timed out. Try again, or raise the timeout in config.yaml."),
    (("connection refused", "network", "connect"),
     "Check your network connection. You may be offline or behind a firewall."),
]


def suggestion_for(message: str) -> str:
    """Return a helpful suggestion for an error message, or '' if none applies."""
    lowered = message.lower()
    for patterns, suggestion in _SUGGESTIONS:
        if any(p in lowered for p in patterns):
            return suggestion
    return ""


def format_user_error(exc: BaseException) -> str:
    """Format an error for terminal display, including its cause and a suggestion."""
    lines = [f"Error: {exc}"]
    cause = exc.__cause__
    if cause is not None:
        lines.append(f"       Cause: {cause!r}")
    suggestion = suggestion_for(f"{exc} {cause or ''}")
    if suggestion:
        lines.append("")
        lines.append(f"Suggestion: {suggestion}")
    return "\n".join(lines)
