"""Tests for `cadence serve`."""

import logging
from pathlib import Path
from unittest.mock import patch

import pytest
from typer.testing import CliRunner

from cadence_cli.config import clear_config_cache
from cadence_cli.main import app

runner = CliRunner()

ENDPOINTS = (
    "[remote]\n"
    'resolver_url = "https://remote.test/resolve"\n'
    'token_url = "https://remote.test/token"\n'
    'write_url = "https://remote.test/write"\n'
)


@pytest.fixture(autouse=True)
def restore_root_handlers():
    """Drop handlers a serve run attaches to the root logger."""
    root = logging.getLogger()
    before = list(root.handlers)
    yield
    for handler in list(root.handlers):
        if handler not in before:
            root.removeHandler(handler)
            handler.close()
    clear_config_cache()


def _file_handlers():
    return [h for h in logging.getLogger().handlers if isinstance(h, logging.FileHandler)]


class TestServe:
    """Test config handling before uvicorn starts."""

    def test_runs_uvicorn_with_config(self, tmp_path: Path) -> None:
        path = tmp_path / "config.toml"
        path.write_text(ENDPOINTS + "\n[logging]\nlevel = \"debug\"\n")

        with patch("uvicorn.run") as run:
            result = runner.invoke(app, ["serve", "-c", str(path), "--port", "8123"])

        assert result.exit_code == 0
        assert run.call_args.kwargs["port"] == 8123
        assert run.call_args.kwargs["log_level"] == "debug"
        assert _file_handlers() == []

    def test_log_file_from_config(self, tmp_path: Path) -> None:
        log_file = tmp_path / "logs" / "serve.log"
        path = tmp_path / "config.toml"
        path.write_text(
            ENDPOINTS
            + "\n[logging]\n"
            + 'level = "INFO"\n'
            + 'format = "%(levelname)s|%(name)s|%(message)s"\n'
            + f'file = "{log_file.as_posix()}"\n'
        )

        with patch("uvicorn.run"):
            result = runner.invoke(app, ["serve", "-c", str(path)])

        assert result.exit_code == 0
        handlers = _file_handlers()
        assert [Path(h.baseFilename).resolve() for h in handlers] == [log_file.resolve()]
        assert handlers[0].level == logging.INFO

        logging.getLogger("cadence_cli.scheduler").info("job started")
        handlers[0].flush()

        assert "INFO|cadence_cli.scheduler|job started" in log_file.read_text()

    def test_log_file_from_env(self, tmp_path: Path) -> None:
        log_file = tmp_path / "env.log"
        env = {
            "CADENCE_CONFIG_DIR": str(tmp_path),
            "CADENCE_RESOLVER_URL": "https://remote.test/resolve",
            "CADENCE_TOKEN_URL": "https://remote.test/token",
            "CADENCE_WRITE_URL": "https://remote.test/write",
            "CADENCE_LOG_FILE": str(log_file),
        }

        with patch("uvicorn.run"):
            result = runner.invoke(app, ["serve"], env=env)

        assert result.exit_code == 0
        assert [Path(h.baseFilename).resolve() for h in _file_handlers()] == [log_file.resolve()]

    def test_same_file_as_cli_flag_not_added_twice(self, tmp_path: Path) -> None:
        log_file = tmp_path / "cadence.log"
        path = tmp_path / "config.toml"
        path.write_text(ENDPOINTS + f'\n[logging]\nfile = "{log_file.as_posix()}"\n')

        with patch("uvicorn.run"):
            result = runner.invoke(app, ["--log-file", str(log_file), "serve", "-c", str(path)])

        assert result.exit_code == 0
        assert len(_file_handlers()) == 1
