"""Shared fixtures for the gategen test suite."""

import pytest
from unittest.mock import patch

CPP_MAIN = "```cpp\n#include <cstdio>\nint main() { std::puts(\"hi\"); return 0; }\n```"


class FakeGenerator:
    """Generation backend double: returns canned replies and records each call."""

    def __init__(self, replies=None, reflection="[MEDIUM]\nLooks straightforward."):
        self.replies = list(replies) if replies is not None else [CPP_MAIN]
        self.reflection = reflection
        self.calls = []

    def reflect(self, prompt):
        return self.reflection

    def submit(self, prompt, model_tier, feedback=None, history=()):
        self.calls.append({
            "prompt": prompt,
            "model_tier": model_tier,
            "feedback": feedback,
            "history": list(history),
        })
        # The last reply repeats once the list runs out.
        index = min(len(self.calls) - 1, len(self.replies) - 1)
        return self.replies[index]


class FakeGateBackend:
    """Gate backend double: every gate passes except those listed in `failing`."""

    def __init__(self, failing=(), diagnostics=None, timeouts=()):
        self.failing = set(failing)
        self.diagnostics = diagnostics or {}
        self.timeouts = set(timeouts)
        self.calls = []

    def execute_gate(self, gate_name, files, timeout):
        from gategen.errors import GateTimeout

        self.calls.append(gate_name)
        if gate_name in self.timeouts:
            raise GateTimeout(gate_name, timeout)
        passed = gate_name not in self.failing
        default = "" if passed else f"src/main.cpp:1:1: error: {gate_name} failed"
        return passed, self.diagnostics.get(gate_name, default)


@pytest.fixture
def fake_generator():
    return FakeGenerator()


@pytest.fixture
def fake_backend():
    return FakeGateBackend()


@pytest.fixture
def make_generator():
    return FakeGenerator


@pytest.fixture
def make_backend():
    return FakeGateBackend


@pytest.fixture
def base_state():
    """Fresh MEDIUM session with nothing generated yet."""
    return {
        "prompt": "Write a program that prints hi",
        "tier": "MEDIUM",
        "max_attempts": 8,
        "attempts_used": 0,
        "rounds": 1,
        "history": [],
        "conversation": [],
        "raw_response": "",
        "feedback": "",
        "status": "awaiting_generation",
    }


@pytest.fixture
def mock_config(tmp_path):
    """Patch the config singleton with test-friendly values."""
    test_config = {
        "reflection_tier": "FAST",
        "models": {
            "FAST": {"provider": "google", "model": "gemini-2.0-flash"},
            "BALANCED": {"provider": "anthropic", "model": "claude-sonnet-4-5"},
            "POWERFUL": {"provider": "anthropic", "model": "claude-opus-4-1"},
        },
        "max_tokens": 1024,
        "generation_timeout_seconds": 30,
        "llm_max_retries": 0,
        "gate_timeout_seconds": 5,
        "container_runtime": "auto",
        "container_image": "example/validator:test",
        "extraction_mode": "multi_file",
        "output_dir": str(tmp_path / "output"),
        "hitl_enabled": False,
        "guidance_enabled": True,
    }
    with patch("gategen.config._config", test_config):
        yield test_config
