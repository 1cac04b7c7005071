"""Generation rules for injection into the code-generation system prompt.

The gates reject code that trips a sanitizer or uses a banned call; stating
those constraints up front saves attempts.
"""

# Edit the list below when the gate chain changes.
_GUIDANCE_RULES = """\
- Initialize every variable at declaration (int x = 0; not int x;), every member \
with an in-class initializer or member initializer list, every array with = {}, \
and every pointer with = nullptr. Uninitialized reads fail the MSan gate.
- Never use gets, strcpy, strcat, sprintf, vsprintf, scanf("%s") or strtok. Use \
std::string, snprintf with a size, std::getline, or strtok_r.
- Never pass non-literal data as a printf/fprintf format string.
- Never use alloca, raw new/delete, or malloc/free. Use std::vector, std::array, \
std::unique_ptr and std::make_unique.
- Never use rand/srand; use std::random_device with std::mt19937. Never use \
tmpnam/tempnam; use mkstemp or std::filesystem.
- Never call system or popen with input-derived strings.
- Protect all data shared between threads with std::mutex or std::atomic, and \
join every std::thread before it goes out of scope.
- Avoid signed overflow, invalid shifts, null dereference and out-of-bounds \
indexing; the program is run under ASan and UBSan and must exit with status 0.
- Keep functions short (cyclomatic complexity <= 15, <= 100 lines).\
"""


def load_guidance() -> str:
    """Return the generation rules, or an empty string if guidance is disabled in config."""
    from gategen.config import get_config

    config = get_config()
    if not config.get("guidance_enabled", False):
        return ""

    return _GUIDANCE_RULES
