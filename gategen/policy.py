"""Attempt budget and escalation policy, kept as data.

The attempt cap of a session is split into three equal bands; the model tier
of an attempt is looked up by (difficulty tier, band). Harder sessions start
higher up the ladder instead of walking through the cheaper bands.
"""

from gategen.state import DifficultyTier, IterationState, ModelTier

MAX_ATTEMPTS: dict[str, int] = {
    "EASY": 5,
    "MEDIUM": 8,
    "HARD": 12,
    "VERY_HARD": 12,
    "IMPOSSIBLE": 2,
}

BAND_COUNT = 3

MODEL_TIER_TABLE: dict[str, tuple[ModelTier, ModelTier, ModelTier]] = {
    "EASY": ("FAST", "BALANCED", "POWERFUL"),
    "MEDIUM": ("BALANCED", "BALANCED", "POWERFUL"),
    "HARD": ("POWERFUL", "POWERFUL", "POWERFUL"),
    "VERY_HARD": ("POWERFUL", "POWERFUL", "POWERFUL"),
    "IMPOSSIBLE": ("POWERFUL", "POWERFUL", "POWERFUL"),
}

# Attempts granted after a "continue" decision always use the strongest tier.
CONTINUATION_TIER: ModelTier = "POWERFUL"


def attempt_band(index: int, max_attempts: int) -> int:
    """Band (0..2) of a 0-based attempt index within a cap of `max_attempts`."""
    if index >= max_attempts:
        return BAND_COUNT - 1
    return min(BAND_COUNT - 1, index * BAND_COUNT // max_attempts)


def model_tier_for_attempt(tier: DifficultyTier, index: int, max_attempts: int | None = None) -> ModelTier:
    """Return the model tier for attempt `index` of a session at `tier`."""
    cap = max_attempts if max_attempts is not None else MAX_ATTEMPTS[tier]
    if index >= cap:
        return CONTINUATION_TIER
    return MODEL_TIER_TABLE[tier][attempt_band(index, cap)]


def current_model_tier(state: IterationState) -> ModelTier:
    """Model tier of the attempt the session is on (index = attempts_used)."""
    return model_tier_for_attempt(state["tier"], state["attempts_used"], state["max_attempts"])


def attempt_budget(state: IterationState) -> int:
    """Total attempts the session may use: one cap per granted round."""
    return state["max_attempts"] * state["rounds"]


def new_session(prompt: str, tier: DifficultyTier) -> IterationState:
    """Create the IterationState for a generation request classified as `tier`."""
    if tier not in MAX_ATTEMPTS:
        raise ValueError(f"Unknown difficulty tier '{tier}'. Must be one of: {tuple(MAX_ATTEMPTS)}")
    return {
        "prompt": prompt,
        "tier": tier,
        "max_attempts": MAX_ATTEMPTS[tier],
        "attempts_used": 0,
        "rounds": 1,
        "history": [],
        "conversation": [],
        "raw_response": "",
        "feedback": "",
        "status": "awaiting_generation",
    }


def extend_budget(state: IterationState) -> dict:
    """State update for a "continue" decision at budget exhaustion.

    IMPOSSIBLE sessions are never extended; their exhaustion is final.
    """
    if state["status"] != "budget_exhausted":
        raise ValueError(f"Cannot extend a session in status '{state['status']}'.")
    return {"rounds": state["rounds"] + 1, "status": "awaiting_generation"}
