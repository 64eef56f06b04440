"""Tests for CLI utilities."""

from pathlib import Path

from ctxcompiler.cli.utils import CompileFailed, apply_log_flags, find_repo_root
from ctxcompiler.config.models import LoggingConfig, LogOutputConfig
from ctxcompiler.core.errors import CompilationCancelled, ConfigError, IntegrityViolation


class TestFindRepoRoot:
    def test_given_config_dir_above_when_searching_then_finds_it(self, tmp_path: Path) -> None:
        # Given
        (tmp_path / ".ctxcompiler").mkdir()
        nested = tmp_path / "app/code/Pay"
        nested.mkdir(parents=True)

        # When
        root = find_repo_root(nested)

        # Then
        assert root == tmp_path.resolve()

    def test_given_git_dir_when_searching_then_finds_it(self, tmp_path: Path) -> None:
        (tmp_path / ".git").mkdir()
        nested = tmp_path / "src"
        nested.mkdir()

        assert find_repo_root(nested) == tmp_path.resolve()


class TestCompileFailed:
    def test_exit_code_is_error_range(self) -> None:
        """Config errors exit 2, integrity errors 4, cancellation 6."""
        assert CompileFailed(ConfigError.parse_error("c.yaml", "bad")).exit_code == 2
        assert CompileFailed(IntegrityViolation.module_cycle(["a", "b", "a"])).exit_code == 4
        assert CompileFailed(CompilationCancelled.during("collect")).exit_code == 6

    def test_message_carries_code_and_name(self) -> None:
        error = ConfigError.parse_error("c.yaml", "bad")

        failed = CompileFailed(error)

        assert failed.error is error
        assert failed.format_message().startswith(str(error))
        assert "2001" in failed.format_message()


class TestApplyLogFlags:
    """Command-line flags adjust console outputs and leave file outputs alone."""

    def make_config(self, tmp_path: Path) -> LoggingConfig:
        return LoggingConfig(
            outputs=[
                LogOutputConfig(),
                LogOutputConfig(
                    destination=str(tmp_path / "ctxc.log"), format="json", level="WARNING"
                ),
            ]
        )

    def test_given_verbose_when_applied_then_file_output_kept(self, tmp_path: Path) -> None:
        # Given
        config = self.make_config(tmp_path)

        # When
        applied = apply_log_flags(config, verbose=True, json_logs=False)

        # Then
        assert applied.level == "DEBUG"
        console, file_output = applied.outputs
        assert (console.destination, console.level) == ("stderr", "DEBUG")
        assert file_output == config.outputs[1]

    def test_given_json_logs_when_applied_then_console_is_json(self, tmp_path: Path) -> None:
        config = self.make_config(tmp_path)

        applied = apply_log_flags(config, verbose=False, json_logs=True)

        assert applied.level == "INFO"
        assert [o.format for o in applied.outputs] == ["json", "json"]
        assert applied.outputs[0].level is None

    def test_given_no_flags_when_applied_then_unchanged(self, tmp_path: Path) -> None:
        config = self.make_config(tmp_path)

        assert apply_log_flags(config, verbose=False, json_logs=False) is config
