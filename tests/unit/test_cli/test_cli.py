"""Tests for the command-line interface."""

from __future__ import annotations

import asyncio
import io
import logging
from types import SimpleNamespace
from unittest.mock import AsyncMock, patch

import pytest

from shellrelay.cli import _build_services, main, parse_args, serve_all
from shellrelay.config.settings import Settings


@pytest.fixture(autouse=True)
def _isolate(monkeypatch: pytest.MonkeyPatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    for var in ("RELAY_HOST", "RELAY_PORT"):
        monkeypatch.delenv(var, raising=False)
    root = logging.getLogger("shellrelay")
    handlers, level = list(root.handlers), root.level
    yield
    for handler in list(root.handlers):
        root.removeHandler(handler)
    for handler in handlers:
        root.addHandler(handler)
    root.setLevel(level)


class TestParseArgs:
    def test_serve(self) -> None:
        args = parse_args(["serve", "-l", ":6000", "-e", "A=1", "-e", "B=2", "-j", "bash", "zsh::7000"])
        assert args.command == "serve"
        assert args.listen == ":6000"
        assert args.export == ["A=1", "B=2"]
        assert args.json is True
        assert args.services == ["bash", "zsh::7000"]

    def test_serve_requires_service(self) -> None:
        with pytest.raises(SystemExit):
            parse_args(["serve"])

    def test_send(self) -> None:
        args = parse_args(["send", "-p", "6000", "echo", "hi"])
        assert args.command == "send"
        assert args.port == 6000
        assert args.words == ["echo", "hi"]


class TestBuildServices:
    def test_builds_one_service_per_target(self, sh_path) -> None:
        args = parse_args(["serve", "-l", "6000", "-e", "FOO=bar", sh_path, f"{sh_path}:0.0.0.0"])
        settings = Settings(exports={"BASE": "1", "FOO": "old"})
        services = _build_services(settings, args)
        assert [(s.address, s.port) for s in services] == [("127.0.0.1", 6000), ("0.0.0.0", 6001)]
        assert dict(services[0].exports) == {"BASE": "1", "FOO": "bar"}

    def test_bad_shell_aborts_startup(self, sh_path) -> None:
        with patch("shellrelay.endpoint.resolver.shutil.which", return_value=None):
            with pytest.raises(SystemExit) as exc_info:
                main(["serve", sh_path, "no-such-shell-xyz"])
        assert exc_info.value.code == 1

    def test_bad_argument_aborts_startup(self) -> None:
        with pytest.raises(SystemExit) as exc_info:
            main(["serve", "bash:a:b:c"])
        assert exc_info.value.code == 1


class TestServeAll:
    @pytest.mark.asyncio
    async def test_returns_true_after_shutdown(self) -> None:
        shutdown = asyncio.Event()
        service = SimpleNamespace(address="127.0.0.1", port=1, serve=AsyncMock(return_value=None))
        shutdown.set()
        assert await serve_all([service], shutdown) is True
        service.serve.assert_awaited_once_with(shutdown)

    @pytest.mark.asyncio
    async def test_bind_failure_reported(self) -> None:
        shutdown = asyncio.Event()
        good = SimpleNamespace(address="127.0.0.1", port=1, serve=AsyncMock(return_value=None))
        bad = SimpleNamespace(address="127.0.0.1", port=2, serve=AsyncMock(side_effect=OSError("in use")))
        assert await serve_all([good, bad], shutdown) is False
        good.serve.assert_awaited_once()


class TestSend:
    def test_send_words(self, monkeypatch: pytest.MonkeyPatch) -> None:
        out = io.BytesIO()
        monkeypatch.setattr("sys.stdout", SimpleNamespace(buffer=out))
        submit = AsyncMock(return_value=b"hi\n")
        with patch("shellrelay.client.submit_script", submit):
            with pytest.raises(SystemExit) as exc_info:
                main(["send", "-H", "h", "-p", "6000", "-m", "EOF", "echo", "hi"])
        assert exc_info.value.code == 0
        assert out.getvalue() == b"hi\n"
        submit.assert_awaited_once_with("h", 6000, "echo hi", marker="EOF", idle_timeout=5.0)

    def test_send_exits_nonzero_on_error_line(self, monkeypatch: pytest.MonkeyPatch) -> None:
        out = io.BytesIO()
        monkeypatch.setattr("sys.stdout", SimpleNamespace(buffer=out))
        response = b"boom\nerror: script execution failed: exit status 1\n"
        with patch("shellrelay.client.submit_script", AsyncMock(return_value=response)):
            with pytest.raises(SystemExit) as exc_info:
                main(["send", "-p", "6000", "false"])
        assert exc_info.value.code == 1
        assert out.getvalue() == response


class TestInvalidConfiguration:
    def test_malformed_client_port_aborts_cleanly(self, monkeypatch: pytest.MonkeyPatch, sh_path) -> None:
        monkeypatch.setenv("RELAY_PORT", "abc")
        with pytest.raises(SystemExit) as exc_info:
            main(["serve", sh_path])
        assert exc_info.value.code == 1

    def test_invalid_yaml_value_aborts_cleanly(self, tmp_path) -> None:
        path = tmp_path / "relay.yaml"
        path.write_text("listen:\n  port: 99999\n")
        with pytest.raises(SystemExit) as exc_info:
            main(["-c", str(path), "serve", "sh"])
        assert exc_info.value.code == 1
