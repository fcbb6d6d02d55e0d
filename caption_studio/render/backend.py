"""Render backends: the interface and an external-command implementation.

WHY: The renderer is an external tool (typically a Node script driving a
headless browser). The HTTP service and the CLI only need "render this
project in this mode, tell me the progress, give me the URL". Hiding the
tool behind RenderBackend lets tests plug in a fake renderer.

HOW: CommandRenderBackend writes the project as JSON to a temporary file
and runs ``<command> --props <file> --mode <key>``. The command reports on
stdout with one directive per line:

    progress 0.42
    output https://cdn.example.com/renders/abc.mp4

Other lines are logged at DEBUG level and kept for error messages.

RULES:
- render() blocks until the command exits; callers run it off the event loop
- Non-zero exit or no "output" line raises RenderError
- on_progress receives floats clamped to [0, 1]
- No automatic retry
"""

from __future__ import annotations

import json
import logging
import math
import os
import shlex
import subprocess
import tempfile
from abc import ABC, abstractmethod
from collections import deque
from typing import Callable, List, Optional

from caption_studio.config import RENDER_COMMAND
from caption_studio.core.models import VideoProject
from caption_studio.render.modes import RenderMode

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[float], None]

_OUTPUT_TAIL_LINES = 20


class RenderError(Exception):
    """Raised when the external renderer fails or produces no output."""


class RenderBackend(ABC):
    """Turns a VideoProject into a downloadable video."""

    @abstractmethod
    def render(
        self,
        project: VideoProject,
        mode: RenderMode,
        on_progress: Optional[ProgressCallback] = None,
    ) -> str:
        """Render ``project`` and return the download URL (or file path)."""


class CommandRenderBackend(RenderBackend):
    """Runs an external render command and parses its stdout directives.

    Args:
        command: Command line, split with shlex. Defaults to RENDER_COMMAND.
    """

    def __init__(self, command: Optional[str] = None) -> None:
        command = command if command is not None else RENDER_COMMAND
        if not command:
            raise ValueError(
                "No render command configured. Set RENDER_COMMAND in the .env file."
            )
        self._argv: List[str] = shlex.split(command)

    def render(
        self,
        project: VideoProject,
        mode: RenderMode,
        on_progress: Optional[ProgressCallback] = None,
    ) -> str:
        fd, props_path = tempfile.mkstemp(prefix="caption_render_", suffix=".json")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(project.to_dict(), f, ensure_ascii=False)
            return self._run(props_path, project.id, mode, on_progress)
        finally:
            try:
                os.remove(props_path)
            except OSError as exc:
                logger.warning("Could not remove render props file %s: %s", props_path, exc)

    def _run(
        self,
        props_path: str,
        project_id: str,
        mode: RenderMode,
        on_progress: Optional[ProgressCallback],
    ) -> str:
        argv = self._argv + ["--props", props_path, "--mode", mode.key]
        logger.info("Rendering project %s (%s)", project_id, mode.name)

        try:
            proc = subprocess.Popen(
                argv,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                text=True,
            )
        except OSError as exc:
            raise RenderError("Could not start render command {!r}: {}".format(argv[0], exc))

        output_url: Optional[str] = None
        tail: deque = deque(maxlen=_OUTPUT_TAIL_LINES)

        with proc:
            for raw_line in proc.stdout:
                line = raw_line.strip()
                if not line:
                    continue
                directive, _, value = line.partition(" ")
                if directive == "progress":
                    fraction = _parse_progress(value)
                    if fraction is not None and on_progress is not None:
                        on_progress(fraction)
                elif directive == "output" and value.strip():
                    output_url = value.strip()
                else:
                    logger.debug("renderer: %s", line)
                    tail.append(line)
            returncode = proc.wait()

        if returncode != 0:
            raise RenderError(
                "Render command exited with code {}: {}".format(returncode, " | ".join(tail))
            )
        if output_url is None:
            raise RenderError("Render command finished without reporting an output URL")

        logger.info("Render of project %s finished: %s", project_id, output_url)
        return output_url


def _parse_progress(value: str) -> Optional[float]:
    try:
        fraction = float(value)
    except ValueError:
        logger.debug("Ignoring malformed progress line: %r", value)
        return None
    if not math.isfinite(fraction):
        logger.debug("Ignoring non-finite progress value: %r", value)
        return None
    return min(max(fraction, 0.0), 1.0)
