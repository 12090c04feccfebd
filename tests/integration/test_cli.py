"""Integration tests for the command line entry point."""

import logging
from pathlib import Path

import pytest
import typer
from typer.testing import CliRunner

from teamcity_exporter import __version__, cli

pytestmark = [pytest.mark.tier(2)]

runner = CliRunner()


@pytest.fixture(autouse=True)
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    root.handlers = handlers
    root.setLevel(level)


class TestCli:
    """Tests for the teamcity-exporter command."""

    def test_version(self) -> None:
        """--version prints the version and exits."""
        result = runner.invoke(cli.app, ["--version"])

        assert result.exit_code == 0
        assert __version__ in result.output

    def test_invalid_config_exits_with_error(self, tmp_path: Path) -> None:
        """A bad configuration aborts before serving."""
        path = tmp_path / "config.yaml"
        path.write_text("instances: []", encoding="utf-8")

        result = runner.invoke(cli.app, ["--config", str(path)])

        assert result.exit_code == 1

    def test_serves_loaded_config(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """A valid configuration is served on the requested address."""
        path = tmp_path / "config.yaml"
        path.write_text(
            "instances: [{name: main, url: http://teamcity.test}]", encoding="utf-8"
        )
        calls = {}
        monkeypatch.setattr(
            cli.uvicorn, "run", lambda app, **kwargs: calls.update(app=app, **kwargs)
        )

        result = runner.invoke(
            cli.app, ["--config", str(path), "--listen-address", "127.0.0.1:9200"]
        )

        assert result.exit_code == 0
        assert calls["host"] == "127.0.0.1"
        assert calls["port"] == 9200


    def test_rejects_relative_telemetry_path(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """A telemetry path without a leading slash is a usage error."""
        path = tmp_path / "config.yaml"
        path.write_text(
            "instances: [{name: main, url: http://teamcity.test}]", encoding="utf-8"
        )
        calls = []
        monkeypatch.setattr(cli.uvicorn, "run", lambda app, **kwargs: calls.append(app))

        result = runner.invoke(
            cli.app, ["--config", str(path), "--telemetry-path", "metrics"]
        )

        assert result.exit_code == 2
        assert calls == []


class TestParseListenAddress:
    """Tests for parse_listen_address()."""

    @pytest.mark.parametrize(
        ("address", "expected"),
        [
            (":9107", ("0.0.0.0", 9107)),
            ("localhost:8080", ("localhost", 8080)),
            ("[::1]:9107", ("::1", 9107)),
        ],
    )
    def test_parses_host_and_port(self, address: str, expected: tuple[str, int]) -> None:
        assert cli.parse_listen_address(address) == expected

    def test_rejects_missing_port(self) -> None:
        with pytest.raises(typer.BadParameter):
            cli.parse_listen_address("localhost")
