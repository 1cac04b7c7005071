"""Tests for the CLI: run() in autonomous and HITL modes, validate mode, main()."""

from unittest.mock import patch

import pytest

from gategen.errors import BackendUnavailable
from gategen.main import main, run, validate_files


class TestRunAutonomous:
    def test_accepted_files_saved(self, mock_config, fake_generator, fake_backend, capsys):
        final = run("print hi", hitl=False, generator=fake_generator, gate_backend=fake_backend)

        assert final["status"] == "accepted"
        out = capsys.readouterr().out
        assert "[gategen] Difficulty: MEDIUM" in out
        assert "Looks straightforward." in out
        assert "[gategen]   PASS  execute" in out
        assert "[gategen] Saved to:" in out
        assert "code0.cpp" in out

    def test_exhausted_prints_failure_report(self, mock_config, make_generator, make_backend, capsys):
        generator = make_generator(reflection="[EASY] Simple.")
        final = run("print hi", hitl=False, generator=generator, gate_backend=make_backend(failing={"compile"}))

        assert final["status"] == "budget_exhausted"
        assert final["attempts_used"] == 5
        out = capsys.readouterr().out
        assert "Model tiers tried: FAST -> BALANCED -> POWERFUL" in out
        assert "failed at gate: compile" in out

    def test_empty_prompt_rejected(self, mock_config, fake_generator, fake_backend):
        with pytest.raises(ValueError):
            run("   ", hitl=False, generator=fake_generator, gate_backend=fake_backend)


class TestRunHITL:
    def test_abort_at_confirmation(self, mock_config, fake_generator, fake_backend):
        with patch("builtins.input", return_value="n"):
            assert run("print hi", hitl=True, generator=fake_generator, gate_backend=fake_backend) is None
        assert fake_generator.calls == []

    def test_clarification_appended_to_prompt(self, mock_config, fake_generator, fake_backend):
        with patch("builtins.input", return_value="use int64_t"):
            final = run("sum numbers", hitl=True, generator=fake_generator, gate_backend=fake_backend)

        assert final["status"] == "accepted"
        assert fake_generator.calls[0]["prompt"] == "sum numbers\n\nClarification: use int64_t"

    def test_easy_skips_confirmation(self, mock_config, make_generator, fake_backend):
        generator = make_generator(reflection="[EASY] Simple.")
        with patch("builtins.input", side_effect=AssertionError("should not prompt")):
            final = run("print hi", hitl=True, generator=generator, gate_backend=fake_backend)
        assert final["status"] == "accepted"

    def test_continue_then_stop(self, mock_config, make_generator, make_backend):
        generator = make_generator(reflection="[EASY] Simple.")
        backend = make_backend(failing={"compile"})
        with patch("builtins.input", side_effect=["y", "n"]):
            final = run("print hi", hitl=True, generator=generator, gate_backend=backend)

        assert final["status"] == "budget_exhausted"
        assert final["rounds"] == 2
        assert final["attempts_used"] == 10
        assert generator.calls[5]["model_tier"] == "POWERFUL"

    def test_impossible_offers_no_continue(self, mock_config, make_generator, make_backend):
        generator = make_generator(reflection="[IMPOSSIBLE] Reading uninitialized memory is undefined.")
        # Only the confirmation prompt is answered.
        with patch("builtins.input", side_effect=[""]):
            final = run("read garbage", hitl=True, generator=generator, gate_backend=make_backend(failing={"execute"}))
        assert final["status"] == "infeasible"
        assert final["attempts_used"] == 2


class TestValidateFiles:
    def test_existing_files_pass(self, mock_config, fake_backend, tmp_path, capsys):
        source = tmp_path / "main.cpp"
        source.write_text("int main() { return 0; }")

        assert validate_files([str(source)], gate_backend=fake_backend)
        assert "All gates passed." in capsys.readouterr().out

    def test_failure_prints_diagnostics(self, mock_config, make_backend, tmp_path, capsys):
        source = tmp_path / "main.cpp"
        source.write_text("int main() {")

        assert not validate_files([str(source)], gate_backend=make_backend(failing={"compile"}))
        out = capsys.readouterr().out
        assert "[gategen]   FAIL  compile" in out
        assert "error: compile failed" in out


class TestMain:
    def test_validate_without_files(self, capsys):
        with patch("sys.argv", ["gategen", "--validate"]):
            with pytest.raises(SystemExit) as exc_info:
                main()
        assert exc_info.value.code == 2

    def test_backend_unavailable_exits_with_message(self, capsys):
        with patch("sys.argv", ["gategen", "--no-hitl", "print", "hi"]), \
             patch("gategen.main.run", side_effect=BackendUnavailable("No container runtime found")) as mock_run:
            with pytest.raises(SystemExit) as exc_info:
                main()

        assert exc_info.value.code == 1
        mock_run.assert_called_once_with("print hi", hitl=False)
        err = capsys.readouterr().err
        assert "Error: No container runtime found" in err
        assert "Suggestion: Install podman" in err

    def test_success_exits_normally(self):
        with patch("sys.argv", ["gategen", "print", "hi"]), \
             patch("gategen.main.run", return_value={"status": "accepted"}):
            main()
