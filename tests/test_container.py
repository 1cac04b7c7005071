"""Tests for gategen.gates.container: command construction and subprocess handling."""

import subprocess
from unittest.mock import patch, MagicMock

import pytest

from gategen.errors import BackendUnavailable, GateTimeout
from gategen.gates.container import (
    GATE_COMMANDS,
    SKIP_SENTINEL,
    ContainerGateBackend,
    detect_runtime,
    source_args,
)
from gategen.gates.pipeline import GATE_ORDER

FILES = [
    {"filename": "widget.h", "content": "#pragma once\nstruct Widget { int n = 0; };"},
    {"filename": "main.cpp", "content": "#include \"widget.h\"\nint main() { return 0; }"},
]


def _completed(returncode=0, stdout="", stderr=""):
    proc = MagicMock()
    proc.returncode = returncode
    proc.stdout = stdout
    proc.stderr = stderr
    return proc


class TestCommands:
    def test_every_gate_has_a_command(self):
        assert set(GATE_COMMANDS) == set(GATE_ORDER)

    def test_source_args_skip_headers(self):
        assert source_args(FILES) == "/src/main.cpp"

    def test_build_command_isolated(self):
        backend = ContainerGateBackend(runtime="podman", image="example/validator:test")
        command = backend.build_command("compile", "/tmp/work", FILES)
        assert command[:3] == ["podman", "run", "--rm"]
        assert command[command.index("--network") + 1] == "none"
        assert "/tmp/work:/src:ro" in command
        assert "example/validator:test" in command
        assert command[-3:-1] == ["sh", "-c"]
        assert "-Werror" in command[-1]
        assert "/src/main.cpp" in command[-1]

    def test_sanitizer_flags(self):
        assert "-fsanitize=address" in GATE_COMMANDS["memory-error-sanitizer"]
        assert "-fsanitize=undefined" in GATE_COMMANDS["undefined-behavior-sanitizer"]
        assert "-fsanitize=memory" in GATE_COMMANDS["uninitialized-read-sanitizer"]
        assert "-fsanitize=thread" in GATE_COMMANDS["thread-sanitizer"]


class TestDetectRuntime:
    @patch("gategen.gates.container.shutil.which", side_effect=lambda name: f"/usr/bin/{name}")
    def test_prefers_podman(self, _mock_which):
        assert detect_runtime("auto") == "/usr/bin/podman"

    @patch("gategen.gates.container.shutil.which", side_effect=lambda name: "/usr/bin/docker" if name == "docker" else None)
    def test_falls_back_to_docker(self, _mock_which):
        assert detect_runtime("auto") == "/usr/bin/docker"

    @patch("gategen.gates.container.shutil.which", return_value=None)
    def test_missing_runtime(self, _mock_which):
        with pytest.raises(BackendUnavailable, match="No container runtime"):
            detect_runtime("auto")


class TestExecuteGate:
    def setup_method(self):
        self.backend = ContainerGateBackend(runtime="podman", image="example/validator:test")

    @patch("gategen.gates.container.subprocess.run")
    def test_pass(self, mock_run):
        mock_run.return_value = _completed(0, stdout="ok\n")
        assert self.backend.execute_gate("compile", FILES, 10) == (True, "ok")
        assert mock_run.call_args.kwargs["timeout"] == 10

    @patch("gategen.gates.container.subprocess.run")
    def test_fail_collects_output(self, mock_run):
        mock_run.return_value = _completed(1, stderr="/src/main.cpp:1:1: error: boom\n")
        passed, diagnostics = self.backend.execute_gate("compile", FILES, 10)
        assert not passed
        assert diagnostics == "/src/main.cpp:1:1: error: boom"

    @patch("gategen.gates.container.subprocess.run")
    def test_files_written_before_run(self, mock_run):
        seen = {}

        def fake_run(command, **kwargs):
            workdir = next(arg for arg in command if arg.endswith(":/src:ro")).split(":")[0]
            with open(f"{workdir}/widget.h", encoding="utf-8") as fh:
                seen["widget.h"] = fh.read()
            return _completed(0)

        mock_run.side_effect = fake_run
        self.backend.execute_gate("compile", FILES, 10)
        assert seen["widget.h"] == FILES[0]["content"]

    @patch("gategen.gates.container.subprocess.run")
    def test_timeout(self, mock_run):
        mock_run.side_effect = subprocess.TimeoutExpired(cmd="podman", timeout=5)
        with pytest.raises(GateTimeout, match="thread-sanitizer timed out after 5s"):
            self.backend.execute_gate("thread-sanitizer", FILES, 5)

    @patch("gategen.gates.container.subprocess.run")
    def test_runtime_error_is_unavailable(self, mock_run):
        mock_run.return_value = _completed(125, stderr="Error: image not known")
        with pytest.raises(BackendUnavailable):
            self.backend.execute_gate("compile", FILES, 10)

    @patch("gategen.gates.container.subprocess.run", side_effect=FileNotFoundError("podman"))
    def test_missing_binary_is_unavailable(self, _mock_run):
        with pytest.raises(BackendUnavailable):
            self.backend.execute_gate("compile", FILES, 10)

    @patch("gategen.gates.container.subprocess.run")
    def test_advisory_gate_skip_passes(self, mock_run):
        mock_run.return_value = _completed(0, stdout=f"{SKIP_SENTINEL}: include-what-you-use not installed\n")
        passed, diagnostics = self.backend.execute_gate("header-hygiene", FILES, 10)
        assert passed
        assert SKIP_SENTINEL in diagnostics

    def test_no_sources(self):
        passed, diagnostics = self.backend.execute_gate("compile", FILES[:1], 10)
        assert not passed
        assert "No source files" in diagnostics

    @patch("gategen.gates.container.subprocess.run")
    def test_path_traversal_fails_the_gate(self, mock_run):
        files = [{"filename": "../evil.cpp", "content": "int main(){}"}]
        passed, diagnostics = self.backend.execute_gate("compile", files, 10)
        assert not passed
        assert "Invalid file name(s): ../evil.cpp" in diagnostics
        mock_run.assert_not_called()

    def test_absolute_name_fails_the_gate(self):
        files = [{"filename": "/etc/main.cpp", "content": "int main(){}"}]
        passed, diagnostics = self.backend.execute_gate("compile", files, 10)
        assert not passed
        assert "/etc/main.cpp" in diagnostics

    def test_unknown_gate(self):
        with pytest.raises(ValueError):
            self.backend.execute_gate("lint", FILES, 10)
