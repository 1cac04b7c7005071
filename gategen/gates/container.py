"""Container gate backend — one disposable, network-less container per gate call."""

import shlex
import shutil
import subprocess
import tempfile
from pathlib import Path, PurePosixPath

from gategen.errors import BackendUnavailable, GateTimeout
from gategen.state import CodeFile
from gategen.utils.parsing import is_safe_filename

SOURCE_SUFFIXES = (".cpp", ".cc", ".cxx", ".c")
MOUNT_POINT = "/src"

_BUILD = "clang++ -std=c++17 -I/src -o /tmp/test {sources}"
_SANITIZE = "clang++ -std=c++17 -fsanitize={sanitizer} -fno-omit-frame-pointer -g -I/src -o /tmp/test {sources} && /tmp/test"

# Printed by the advisory gates when their tool is missing from the image.
SKIP_SENTINEL = "GATE_SKIP"

# podman and docker exit with 125 when the container itself could not start.
RUNTIME_ERROR_EXIT = 125

GATE_COMMANDS = {
    "static-analysis-pass-1": "clang-tidy -quiet -header-filter=.* {sources} -- -std=c++17 -Wall -Wextra -I/src",
    "static-analysis-pass-2": (
        "cppcheck --enable=warning,performance,portability --error-exitcode=1 "
        "--suppress=missingIncludeSystem --std=c++17 -I/src {sources}"
    ),
    "header-hygiene": (
        "if command -v include-what-you-use >/dev/null 2>&1; then "
        "for f in {sources}; do include-what-you-use -std=c++17 -I/src \"$f\"; done; exit 0; "
        f"else echo '{SKIP_SENTINEL}: include-what-you-use not installed'; fi"
    ),
    "compile": (
        "clang++ -std=c++17 -Wall -Wextra -Werror -fstack-protector-all "
        "-U_FORTIFY_SOURCE -D_FORTIFY_SOURCE=2 -fPIE -pie -Wl,-z,relro -Wl,-z,now "
        "-I/src -o /tmp/test {sources}"
    ),
    "memory-error-sanitizer": _SANITIZE.replace("{sanitizer}", "address"),
    "undefined-behavior-sanitizer": _SANITIZE.replace("{sanitizer}", "undefined -fno-sanitize-recover=all"),
    "uninitialized-read-sanitizer": (
        "if [ -f /opt/msan/lib/libc++.so ] || [ -f /opt/msan/lib/libc++.a ]; then "
        "clang++ -std=c++17 -fsanitize=memory -fsanitize-memory-track-origins -fno-omit-frame-pointer -g "
        "-stdlib=libc++ -nostdinc++ -isystem /opt/msan/include/c++/v1 -L/opt/msan/lib -Wl,-rpath,/opt/msan/lib "
        "-lc++ -lc++abi -I/src -o /tmp/test {sources} && /tmp/test; "
        f"else echo '{SKIP_SENTINEL}: MSan libc++ not available'; fi"
    ),
    "thread-sanitizer": _SANITIZE.replace("{sanitizer}", "thread"),
    "execute": _BUILD.replace("-o /tmp/test", "-O2 -o /tmp/test") + " && /tmp/test",
}


def detect_runtime(preference: str = "auto") -> str:
    """Return the path of the container runtime binary (podman preferred over docker)."""
    candidates = ("podman", "docker") if preference == "auto" else (preference,)
    for name in candidates:
        path = shutil.which(name)
        if path:
            return path
    raise BackendUnavailable(f"No container runtime found (looked for: {', '.join(candidates)})")


def _safe_path(root: Path, filename: str) -> Path:
    if not is_safe_filename(filename):
        raise ValueError(f"Refusing to write outside the workspace: {filename}")
    return root.joinpath(*PurePosixPath(filename).parts)


def source_args(files: list[CodeFile]) -> str:
    """Container-side paths of the translation units, shell-quoted."""
    return " ".join(
        shlex.quote(f"{MOUNT_POINT}/{f['filename']}")
        for f in files
        if f["filename"].endswith(SOURCE_SUFFIXES)
    )


class ContainerGateBackend:
    """Runs each gate as `<runtime> run --rm --network none -v <tmp>:/src:ro <image> sh -c <cmd>`."""

    def __init__(self, runtime: str, image: str):
        self.runtime = runtime
        self.image = image

    @classmethod
    def from_config(cls, config: dict) -> "ContainerGateBackend":
        runtime = detect_runtime(config.get("container_runtime", "auto"))
        return cls(runtime=runtime, image=config["container_image"])

    def build_command(self, gate_name: str, workdir: str, files: list[CodeFile]) -> list[str]:
        template = GATE_COMMANDS[gate_name]
        script = template.format(sources=source_args(files))
        return [
            self.runtime, "run", "--rm",
            "--network", "none",
            # TSan needs ptrace/ASLR control.
            "--security-opt", "seccomp=unconfined",
            "-v", f"{workdir}:{MOUNT_POINT}:ro",
            self.image,
            "sh", "-c", script,
        ]

    def execute_gate(self, gate_name: str, files: list[CodeFile], timeout: float) -> tuple[bool, str]:
        if gate_name not in GATE_COMMANDS:
            raise ValueError(f"Unknown gate '{gate_name}'")
        if not source_args(files):
            return False, "No source files (.cpp/.cc/.c) to validate."
        unsafe = [f["filename"] for f in files if not is_safe_filename(f["filename"])]
        if unsafe:
            return False, f"Invalid file name(s): {', '.join(unsafe)}. Use relative names such as main.cpp."

        with tempfile.TemporaryDirectory(prefix="gategen-") as workdir:
            for f in files:
                path = _safe_path(Path(workdir), f["filename"])
                path.parent.mkdir(parents=True, exist_ok=True)
                path.write_text(f["content"], encoding="utf-8")

            command = self.build_command(gate_name, workdir, files)
            try:
                proc = subprocess.run(command, capture_output=True, text=True, timeout=timeout)
            except subprocess.TimeoutExpired as exc:
                raise GateTimeout(gate_name, timeout) from exc
            except OSError as exc:
                raise BackendUnavailable(f"Could not start {self.runtime}: {exc}") from exc

        output = (proc.stdout + proc.stderr).strip()
        if proc.returncode == RUNTIME_ERROR_EXIT:
            raise BackendUnavailable(f"{self.runtime} could not run {self.image}: {output}")
        if SKIP_SENTINEL in proc.stdout:
            return True, output
        return proc.returncode == 0, output
