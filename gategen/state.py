"""Session state — single source of truth passed through the graph."""

from typing import Literal, TypedDict

DifficultyTier = Literal["EASY", "MEDIUM", "HARD", "VERY_HARD", "IMPOSSIBLE"]
ModelTier = Literal["FAST", "BALANCED", "POWERFUL"]
SessionStatus = Literal[
    "awaiting_generation",
    "awaiting_validation",
    "accepted",
    "budget_exhausted",
    "infeasible",
    "cancelled",
]

# Ordered from least to most demanding / capable.
DIFFICULTY_TIERS: tuple[str, ...] = ("EASY", "MEDIUM", "HARD", "VERY_HARD", "IMPOSSIBLE")
MODEL_TIERS: tuple[str, ...] = ("FAST", "BALANCED", "POWERFUL")


class CodeFile(TypedDict):
    filename: str
    content: str


class GateResult(TypedDict):
    gate_name: str
    passed: bool
    diagnostics: str


class Attempt(TypedDict):
    index: int  # 0-based
    model_tier: ModelTier
    files: list[CodeFile]
    gate_results: list[GateResult]  # Stops at the first failure.
    outcome: Literal["passed", "failed"]


class IterationState(TypedDict):
    prompt: str  # Original user request. Immutable after init.
    tier: DifficultyTier  # Fixed at session creation.
    max_attempts: int  # Per-round cap for the tier. Fixed at session creation.
    attempts_used: int  # Monotonic.
    rounds: int  # Budget grants; 1 + number of "continue" decisions.
    history: list[Attempt]  # Append-only.
    conversation: list[dict]  # Assistant replies and critiques after the prompt.
    raw_response: str  # Latest generation output, consumed by validate.
    feedback: str  # Critique for the next generation call ("" on attempt 0).
    status: SessionStatus
