"""Tests for the script spool."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from shellrelay.endpoint.spool import SPOOL_PREFIX, ScriptSpool, SpoolError


class TestScriptSpool:
    def test_open_creates_prefixed_file(self, spool_dir) -> None:
        spool = ScriptSpool(spool_dir)
        path = spool.open()
        try:
            assert path.exists()
            assert path.parent == spool_dir
            assert path.name.startswith(SPOOL_PREFIX)
            assert spool.is_open
        finally:
            spool.release()

    def test_lines_written_verbatim(self, spool_dir) -> None:
        with ScriptSpool(spool_dir) as spool:
            spool.open()
            spool.append(b"echo one\n")
            spool.append(b"echo two\r\n")
            path = spool.finalize()
            assert not spool.is_open
            assert path.read_bytes() == b"echo one\necho two\r\n"

    def test_release_removes_file(self, spool_dir) -> None:
        spool = ScriptSpool(spool_dir)
        path = spool.open()
        spool.release()
        assert not path.exists()

    def test_release_twice_is_noop(self, spool_dir) -> None:
        spool = ScriptSpool(spool_dir)
        path = spool.open()
        spool.finalize()
        path.unlink()
        spool.release()
        spool.release()

    def test_release_without_open(self) -> None:
        ScriptSpool().release()

    def test_context_manager_removes_file_on_error(self, spool_dir) -> None:
        with pytest.raises(RuntimeError):
            with ScriptSpool(spool_dir) as spool:
                path = spool.open()
                raise RuntimeError("boom")
        assert not path.exists()
        assert list(spool_dir.iterdir()) == []

    def test_names_unique(self, spool_dir) -> None:
        spools = [ScriptSpool(spool_dir) for _ in range(20)]
        paths = {s.open() for s in spools}
        assert len(paths) == 20
        for s in spools:
            s.release()

    def test_append_before_open(self) -> None:
        with pytest.raises(SpoolError, match="not open"):
            ScriptSpool().append(b"x\n")

    def test_finalize_before_open(self) -> None:
        with pytest.raises(SpoolError, match="never opened"):
            ScriptSpool().finalize()

    def test_open_twice_rejected(self, spool_dir) -> None:
        with ScriptSpool(spool_dir) as spool:
            spool.open()
            with pytest.raises(SpoolError, match="already open"):
                spool.open()

    def test_open_failure(self, tmp_path) -> None:
        spool = ScriptSpool(tmp_path / "missing")
        with pytest.raises(SpoolError):
            spool.open()
        assert spool.path is None

    def test_write_failure(self, spool_dir) -> None:
        with ScriptSpool(spool_dir) as spool:
            spool.open()
            spool._file.close()
            spool._file = MagicMock()
            spool._file.write.side_effect = OSError("disk full")
            with pytest.raises(SpoolError, match="disk full"):
                spool.append(b"x\n")
