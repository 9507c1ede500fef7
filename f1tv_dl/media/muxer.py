"""
Runs ffmpeg to remux a transport plan into the output file, reporting progress.
"""

import asyncio
import logging
import re
import shlex
import shutil
from collections import deque
from dataclasses import replace
from pathlib import Path
from typing import Callable, Optional, Protocol

from f1tv_dl.exceptions import ConfigurationError, MuxerFailureError
from f1tv_dl.models.job import JobProgress
from f1tv_dl.models.plan import TransportPlan
from f1tv_dl.utils.formatting import parse_timestamp

log = logging.getLogger(__name__)

ProgressCallback = Callable[[JobProgress], None]

_DURATION_RE = re.compile(r"Duration:\s*(\d+:\d{2}:\d{2}(?:\.\d+)?)")
_BITRATE_RE = re.compile(r"([\d.]+)\s*kbits/s")


class Muxer(Protocol):
    async def run(
        self,
        plan: TransportPlan,
        output_path: Path,
        on_progress: Optional[ProgressCallback] = None,
    ) -> None: ...


def build_command(ffmpeg: str, plan: TransportPlan, output_path: Path) -> list[str]:
    """Assembles the ffmpeg argument list for a plan."""
    cmd = [ffmpeg, "-hide_banner", "-nostats", "-progress", "pipe:1"]
    for source in plan.inputs:
        cmd += source.input_options + ["-i", source.url]
    return cmd + plan.output_options() + ["-y", str(output_path)]


class ProgressParser:
    """
    Accumulates ffmpeg ``-progress`` key=value lines into JobProgress snapshots.
    A snapshot is complete when a ``progress=`` line arrives.
    """

    def __init__(self):
        self.progress = JobProgress()
        self.finished = False

    def feed_stderr(self, line: str) -> None:
        if self.progress.duration is None and (match := _DURATION_RE.search(line)):
            self.progress.duration = parse_timestamp(match.group(1))
            log.info(f"File duration: [green]{match.group(1)}[/green]")

    def feed(self, line: str) -> Optional[JobProgress]:
        key, sep, value = line.strip().partition("=")
        if not sep:
            return None
        value = value.strip()
        try:
            if key == "frame":
                self.progress.frames = int(value)
            elif key == "fps":
                self.progress.fps = float(value)
            elif key == "bitrate":
                match = _BITRATE_RE.match(value)
                self.progress.bitrate = float(match.group(1)) if match else 0.0
            elif key == "out_time":
                self.progress.timemark = value
                if self.progress.duration:
                    elapsed = parse_timestamp(value)
                    self.progress.percent = max(
                        0, min(100, int(elapsed / self.progress.duration * 100))
                    )
        except ValueError:
            # ffmpeg reports N/A before the first frame is written.
            return None
        if key == "progress":
            self.finished = value == "end"
            if self.finished and self.progress.duration:
                self.progress.percent = 100
            return replace(self.progress)
        return None


class FFmpegMuxer:
    """Muxer implementation that shells out to ffmpeg. Running jobs are never cancelled."""

    def __init__(self, ffmpeg_path: str = "ffmpeg"):
        self.ffmpeg_path = ffmpeg_path

    def _resolve_binary(self) -> str:
        binary = shutil.which(self.ffmpeg_path)
        if not binary:
            raise ConfigurationError(
                f"ffmpeg executable '{self.ffmpeg_path}' was not found on PATH."
            )
        return binary

    async def run(
        self,
        plan: TransportPlan,
        output_path: Path,
        on_progress: Optional[ProgressCallback] = None,
    ) -> None:
        cmd = build_command(self._resolve_binary(), plan, output_path)
        log.debug(f"Executing command: [green]{shlex.join(cmd)}[/green]")
        log.info(f"Output file: [green]{output_path}[/green]")

        process = await asyncio.create_subprocess_exec(
            *cmd,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
        parser = ProgressParser()
        stderr_tail: deque[str] = deque(maxlen=20)

        async def read_stderr() -> None:
            async for raw in process.stderr:
                line = raw.decode("utf-8", errors="replace").rstrip()
                if line:
                    stderr_tail.append(line)
                    parser.feed_stderr(line)

        async def read_progress() -> None:
            async for raw in process.stdout:
                snapshot = parser.feed(raw.decode("utf-8", errors="replace"))
                if snapshot and on_progress:
                    on_progress(snapshot)

        await asyncio.gather(read_stderr(), read_progress())
        returncode = await process.wait()

        if returncode != 0:
            detail = stderr_tail[-1] if stderr_tail else "no output"
            log.error(f"[red]FFmpeg error: {detail}[/red]")
            raise MuxerFailureError(f"ffmpeg exited with code {returncode}: {detail}")
