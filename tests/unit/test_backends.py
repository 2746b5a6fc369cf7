"""
Unit tests for the subprocess backends and their workspace.
"""

import shutil
import stat
import sys
from pathlib import Path

import pytest

from mediaprobe.extraction.backends import BackendWorkspace, FFmpegBackend, FFprobeBoxBackend
from mediaprobe.extraction.errors import BackendError, BackendLoadCause, BackendLoadError

posix_only = pytest.mark.skipif(sys.platform == "win32", reason="shell script stand-ins")


def make_script(path: Path, body: str) -> str:
    path.write_text("#!/bin/sh\n" + body)
    path.chmod(path.stat().st_mode | stat.S_IEXEC)
    return str(path)


@pytest.mark.unit
class TestWorkspace:
    """Tests for BackendWorkspace."""

    @pytest.mark.asyncio
    async def test_write_read_delete(self, workspace):
        """Test the basic file operations."""
        await workspace.write("input.mkv", b"abc")

        assert await workspace.read("input.mkv") == b"abc"
        assert workspace.list_files() == ["input.mkv"]

        await workspace.delete("input.mkv")
        assert workspace.list_files() == []

    @pytest.mark.parametrize("name", ["", "..", "../x.srt", "sub/x.srt"])
    def test_rejects_paths(self, workspace, name):
        """Test that only bare file names are accepted."""
        with pytest.raises(ValueError):
            workspace.path_for(name)

    def test_destroy(self, temp_dir):
        """Test that destroy removes the scratch directory."""
        workspace = BackendWorkspace(parent=str(temp_dir))
        root = workspace.ensure()

        workspace.destroy()

        assert not root.exists()


@pytest.mark.unit
class TestLoad:
    """Tests for backend loading."""

    @pytest.mark.asyncio
    async def test_missing_ffmpeg(self, workspace, temp_dir):
        """Test that a missing binary is a missing capability."""
        backend = FFmpegBackend(workspace, ffmpeg_path=str(temp_dir / "no-ffmpeg"))

        with pytest.raises(BackendLoadError) as exc_info:
            await backend.load()

        assert exc_info.value.cause == BackendLoadCause.MISSING_CAPABILITY
        assert not backend.loaded

    @posix_only
    @pytest.mark.asyncio
    async def test_failing_ffprobe(self, workspace, temp_dir):
        """Test that a non-zero version check fails the load."""
        path = make_script(temp_dir / "ffprobe", "exit 3\n")

        with pytest.raises(BackendLoadError):
            await FFprobeBoxBackend(workspace, ffprobe_path=path).load()


@posix_only
@pytest.mark.unit
class TestExecute:
    """Tests for running the backends against stand-in scripts."""

    @pytest.mark.asyncio
    async def test_ffmpeg_streams_stderr(self, workspace, temp_dir):
        """Test that every stderr line reaches the log subscribers."""
        path = make_script(
            temp_dir / "ffmpeg",
            'if [ "$2" = "-version" ]; then echo "ffmpeg version 7.0"; exit 0; fi\n'
            'echo "Input #0, matroska,webm, from \'input.mkv\':" >&2\n'
            'echo "  Duration: 00:00:10.00, start: 0.000000, bitrate: 100 kb/s" >&2\n'
            "exit 1\n",
        )
        backend = FFmpegBackend(workspace, ffmpeg_path=path)
        await backend.load()
        seen = []
        backend.on_log(seen.append)

        result = await backend.execute(["-i", "input.mkv"])

        assert backend.version == "ffmpeg version 7.0"
        assert result.returncode == 1
        assert seen == result.logs
        assert "Duration: 00:00:10.00" in result.log_text

    @pytest.mark.asyncio
    async def test_ffprobe_builds_info(self, workspace, temp_dir):
        """Test that ffprobe JSON becomes a track graph."""
        path = make_script(
            temp_dir / "ffprobe",
            'if [ "$2" = "-version" ]; then exit 0; fi\n'
            "cat <<'JSON'\n"
            '{"format": {"format_name": "mov,mp4", "duration": "2.0"},'
            ' "streams": [{"index": 0, "codec_type": "audio", "codec_name": "aac", "channels": 2}]}\n'
            "JSON\n",
        )
        backend = FFprobeBoxBackend(workspace, ffprobe_path=path)
        await backend.load()

        result = await backend.execute(["input.mp4"])

        assert result.ok
        assert result.info["duration"] == 2000
        assert result.info["tracks"][0]["type"] == "audio"

    @pytest.mark.asyncio
    async def test_ffprobe_invalid_json(self, workspace, temp_dir):
        """Test that unparsable output is a backend error."""
        path = make_script(temp_dir / "ffprobe", 'if [ "$2" = "-version" ]; then exit 0; fi\necho "not json"\n')
        backend = FFprobeBoxBackend(workspace, ffprobe_path=path)
        await backend.load()

        with pytest.raises(BackendError):
            await backend.execute(["input.mp4"])


@pytest.mark.ffmpeg
@pytest.mark.skipif(shutil.which("ffmpeg") is None, reason="ffmpeg not installed")
@pytest.mark.asyncio
async def test_real_ffmpeg_loads(workspace):
    """Test loading against an installed ffmpeg."""
    backend = FFmpegBackend(workspace)

    await backend.load()

    assert backend.loaded
    assert backend.version.startswith("ffmpeg version")
