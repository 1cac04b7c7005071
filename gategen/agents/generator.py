"""Generator agent — the chat models behind the reflection and generation calls.

One chat model per capability tier, built from the `models` config section.
Generation is stateless per call: the caller passes the conversation so far
(assistant replies and critiques of earlier attempts) and the critique for
this attempt.
"""

import sys

from langchain_anthropic import ChatAnthropic
from langchain_core.runnables import RunnableConfig
from langchain_google_genai import ChatGoogleGenerativeAI

from gategen.config import get_config, run_option
from gategen.errors import BackendUnavailable, GategenError
from gategen.policy import current_model_tier
from gategen.state import IterationState, ModelTier
from gategen.utils.guidance import load_guidance
from gategen.utils.parsing import invoke_with_retry

# Conversation overflow thresholds
CONTEXT_CHAR_LIMIT = 120_000
EXCHANGES_TO_KEEP = 3

REFLECTION_PROMPT = """\
You are a senior C++ engineer. Analyze the following C++ task before any code \
is written.

Start your reply with exactly one difficulty tag on its own:
[EASY] - a short, single-function or single-file program
[MEDIUM] - a few components, standard library only, no tricky invariants
[COMPLEX] - concurrency, custom data structures, or careful memory management
[VERY_HARD] - several interacting subsystems or lock-free / low-level work
[IMPOSSIBLE] - cannot be written safely as requested (e.g. it demands undefined behavior)

After the tag:
- For easy tasks, state your approach in a sentence or two.
- Otherwise list the requirements you identified, your assumptions (types, \
ranges, edge cases, threading), and any clarifying question.

Do NOT output any code. No code blocks, no snippets, no pseudo-code. Code \
generation happens in a separate step.
"""

GENERATION_SYSTEM_PROMPT = """\
Generate C++ code. Your code will be validated by clang-tidy, cppcheck, \
include-what-you-use, a -Wall -Wextra -Werror compile, ASan, UBSan, MSan, \
TSan (when threads are used), and a plain run that must exit with status 0.

Rules:
- Generate ONLY valid, complete, self-contained C++17 that compiles and runs standalone.
- Include every header you use.
- Include main() unless a library or header alone is requested.

Output format:
- Single file: one ```cpp fenced block.
- Multiple files (a class or library with a header): one fenced block per \
file, each starting with a filename line, e.g.

```cpp
// FILE: counter.h
#pragma once
class Counter { ... };
```

```cpp
// FILE: main.cpp
#include "counter.h"
int main() { ... }
```

Respond with the code blocks only.
"""


def _build_llm(model_tier: ModelTier, config: dict):
    """Instantiate the chat model configured for `model_tier`."""
    try:
        model_cfg = config["models"][model_tier]
    except KeyError:
        raise ValueError(f"No model configured for tier '{model_tier}'.") from None

    provider = model_cfg.get("provider", "anthropic")
    timeout = config.get("generation_timeout_seconds", 300)
    max_tokens = config.get("max_tokens", 8192)

    # Transient retries are handled by invoke_with_retry, not the client.
    if provider == "anthropic":
        return ChatAnthropic(
            model=model_cfg["model"],
            temperature=0,
            max_tokens=max_tokens,
            timeout=timeout,
            max_retries=0,
        )
    if provider == "google":
        return ChatGoogleGenerativeAI(
            model=model_cfg["model"],
            temperature=0,
            max_output_tokens=max_tokens,
            timeout=timeout,
            max_retries=0,
        )
    raise ValueError(f"Unknown provider '{provider}' for tier '{model_tier}'. Must be anthropic or google.")


def _message_text(response) -> str:
    content = response.content
    if isinstance(content, list):
        # Content blocks: keep the text parts only.
        return "".join(
            block.get("text", "") if isinstance(block, dict) else str(block)
            for block in content
        )
    return content or ""


def _trim_conversation(history: list[dict]) -> list[dict]:
    """Keep only the last EXCHANGES_TO_KEEP exchanges when the conversation is too long.

    An exchange is one assistant reply plus the critique that followed it.
    """
    total = sum(len(m.get("content", "")) for m in history)
    if total < CONTEXT_CHAR_LIMIT:
        return list(history)

    keep = EXCHANGES_TO_KEEP * 2
    if len(history) <= keep:
        return list(history)

    print(
        f"[gategen] Conversation is {total} chars; keeping the last {EXCHANGES_TO_KEEP} exchanges.",
        file=sys.stderr,
    )
    trimmed = history[-keep:]
    # The kept window must open with an assistant reply.
    if trimmed[0].get("role") != "assistant":
        trimmed = trimmed[1:]
    return trimmed


class LLMGenerator:
    """Generation backend: submit(prompt, model_tier, feedback, history) -> raw text."""

    def __init__(self, config: dict | None = None):
        self.config = config if config is not None else get_config()
        self._llms = {}

    def _llm(self, model_tier: ModelTier):
        if model_tier not in self._llms:
            self._llms[model_tier] = _build_llm(model_tier, self.config)
        return self._llms[model_tier]

    def _invoke(self, model_tier: ModelTier, messages: list[dict]) -> str:
        llm = self._llm(model_tier)
        try:
            response = invoke_with_retry(llm, messages, self.config.get("llm_max_retries", 2))
        except GategenError:
            raise
        except Exception as exc:
            raise BackendUnavailable(f"Generation backend ({model_tier}) failed: {exc}") from exc
        return _message_text(response)

    def _system_prompt(self) -> str:
        system_content = GENERATION_SYSTEM_PROMPT
        guidance = load_guidance()
        if guidance:
            system_content += (
                "\n\n## Code Safety Rules\n"
                "The validation gates enforce the following. Code that breaks any "
                "of them will be rejected.\n\n"
                f"{guidance}"
            )
        return system_content

    def reflect(self, prompt: str) -> str:
        """Ask the reflection model to analyse the request; the reply opens with a difficulty tag."""
        model_tier = self.config.get("reflection_tier", "FAST")
        messages = [
            {"role": "system", "content": REFLECTION_PROMPT},
            {"role": "user", "content": prompt},
        ]
        return self._invoke(model_tier, messages)

    def submit(self, prompt: str, model_tier: ModelTier, feedback: str | None = None, history=()) -> str:
        """Generate code for `prompt` with the `model_tier` model.

        Args:
            prompt: The user's request.
            model_tier: Capability tier chosen for this attempt.
            feedback: Critique of the previous attempt, if any.
            history: Earlier assistant replies and critiques, oldest first.
        """
        messages = [
            {"role": "system", "content": self._system_prompt()},
            {"role": "user", "content": prompt},
        ]
        messages.extend(_trim_conversation(list(history)))
        if feedback:
            messages.append({"role": "user", "content": feedback})
        return self._invoke(model_tier, messages)


def generate_node(state: IterationState, config: RunnableConfig) -> dict:
    """Generate node for the LangGraph StateGraph.

    Calls the generator with the model tier of the current attempt, the
    pending critique and the conversation so far. The run config may carry
    a `generator` and a `cancel_event`; without a generator an LLMGenerator
    is built from config.yaml.
    """
    cancel_event = run_option(config, "cancel_event")
    if cancel_event is not None and cancel_event.is_set():
        return {"status": "cancelled"}

    generator = run_option(config, "generator") or LLMGenerator()
    feedback = state["feedback"]
    raw = generator.submit(
        state["prompt"],
        current_model_tier(state),
        feedback=feedback or None,
        history=state["conversation"],
    )

    conversation = list(state["conversation"])
    if feedback:
        conversation.append({"role": "user", "content": feedback})
    conversation.append({"role": "assistant", "content": raw})

    return {
        "raw_response": raw,
        "conversation": conversation,
        "feedback": "",
        "status": "awaiting_validation",
    }
