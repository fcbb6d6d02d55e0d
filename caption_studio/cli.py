"""Command-line interface for Caption Studio.

WHY: Users need a terminal route through the same pipeline the HTTP API
runs: transcribe a video into cues, re-segment saved cues with another
words-per-cue limit, render a captioned video, or start the API server.

HOW: argparse with one subcommand per task:
  transcribe  upload → create → poll (AssemblyAIClient), then normalize →
              group → split, and save a JSON file next to the video
  resegment   re-split the raw subtitles of a saved JSON file
  render      run the configured render command on a project JSON file
  serve       start the FastAPI app with uvicorn
Status messages go to stderr; JSON goes to the output file or stdout.

RULES:
- Validates the media extension against SUPPORTED_MEDIA_FORMATS before any API call
- Output naming: {stem}-subtitles.json, numeric suffix on conflict
  (-subtitles-2.json)
- Exit code 1 on user or provider errors, 130 on Ctrl-C
- --verbose turns on DEBUG logging
- Cue lists are validated against the subtitles JSON Schema before writing
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

import jsonschema

from caption_studio.config import (
    DEFAULT_LANGUAGE_CODE,
    DEFAULT_MAX_WORDS_PER_CUE,
    SUPPORTED_MEDIA_FORMATS,
)
from caption_studio.core.errors import SegmentationError
from caption_studio.core.models import Subtitle, VideoProject
from caption_studio.core.segmenter import split_subtitles
from caption_studio.core.validation import validate_cues

logger = logging.getLogger(__name__)

_OUTPUT_SUFFIX = "-subtitles.json"


def _status(msg: str) -> None:
    """Print a status message to stderr so stdout stays pipeable."""
    print(msg, file=sys.stderr, flush=True)


def _fail(msg: str) -> None:
    print("Error: {}".format(msg), file=sys.stderr)
    sys.exit(1)


def _resolve_output_path(stem: str, output_dir: Path) -> Path:
    """Return a free {stem}-subtitles.json path, adding -2, -3, ... on conflict."""
    base_path = output_dir / "{}{}".format(stem, _OUTPUT_SUFFIX)
    if not base_path.exists():
        return base_path

    name, ext = _OUTPUT_SUFFIX.rsplit(".", 1)
    counter = 2
    while True:
        candidate = output_dir / "{}{}-{}.{}".format(stem, name, counter, ext)
        if not candidate.exists():
            return candidate
        counter += 1


def _write_json(data: Any, output: Optional[Path]) -> None:
    text = json.dumps(data, ensure_ascii=False, indent=2)
    if output is None:
        sys.stdout.write(text + "\n")
    else:
        output.write_text(text + "\n", encoding="utf-8")


# ---------------------------------------------------------------------------
# transcribe
# ---------------------------------------------------------------------------


async def _transcribe(input_path: Path, language: str, max_words: int) -> Dict[str, Any]:
    """Run upload → create → poll → normalize → group → split for one file."""
    from caption_studio.api.client import AssemblyAIClient
    from caption_studio.core.normalizer import average_confidence, normalize_words
    from caption_studio.core.segmenter import group_words

    async with AssemblyAIClient() as client:
        upload_url = await client.upload_file(input_path, on_status=_status)
        transcript_id = await client.create_transcript(upload_url, language, on_status=_status)
        _status("  Transcript id: {}".format(transcript_id))
        try:
            transcript = await client.wait_for_transcript(transcript_id, on_status=_status)
        finally:
            await client.delete_transcript(transcript_id)

    words = normalize_words(transcript)
    raw_subtitles = group_words(words)
    subtitles = split_subtitles(raw_subtitles, max_words)
    confidence = average_confidence(words)
    validate_cues([s.to_dict() for s in raw_subtitles])
    validate_cues([s.to_dict() for s in subtitles])

    _status("  {} words, {} cues, average confidence {}%".format(
        len(words), len(subtitles), confidence
    ))
    return {
        "rawSubtitles": [s.to_dict() for s in raw_subtitles],
        "subtitles": [s.to_dict() for s in subtitles],
        "confidence": confidence,
        "audioDuration": transcript.audio_duration,
    }


def _cmd_transcribe(args: argparse.Namespace) -> None:
    input_path = Path(args.input_file).resolve()
    if not input_path.is_file():
        _fail("File not found: {}".format(input_path))

    ext = input_path.suffix.lower()
    if ext not in SUPPORTED_MEDIA_FORMATS:
        _fail("Unsupported file type '{}'. Supported formats: {}".format(
            ext, ", ".join(sorted(SUPPORTED_MEDIA_FORMATS))
        ))
    if args.max_words < 1:
        _fail("--max-words must be >= 1, got {}".format(args.max_words))

    if args.output:
        output_path = Path(args.output).resolve()
    else:
        output_path = _resolve_output_path(input_path.stem, input_path.parent)

    _status("Transcribing {} ({})".format(input_path.name, args.language))
    try:
        result = asyncio.run(_transcribe(input_path, args.language, args.max_words))
    except KeyboardInterrupt:
        _status("\nCancelled by user.")
        sys.exit(130)
    except Exception as exc:
        logger.debug("Transcription failed", exc_info=True)
        _fail(str(exc))

    _write_json(result, output_path)
    _status("Done! Saved {}".format(output_path))


# ---------------------------------------------------------------------------
# resegment
# ---------------------------------------------------------------------------


def _load_raw_subtitles(path: Path) -> List[Subtitle]:
    """Read subtitles from a transcribe output file or a plain cue list.

    Prefers "rawSubtitles" so re-segmentation never compounds.
    """
    data = json.loads(path.read_text(encoding="utf-8"))
    if isinstance(data, dict):
        items = data.get("rawSubtitles") or data.get("subtitles") or []
    else:
        items = data
    return [Subtitle.from_dict(item) for item in items]


def _cmd_resegment(args: argparse.Namespace) -> None:
    input_path = Path(args.input_file)
    if not input_path.is_file():
        _fail("File not found: {}".format(input_path))

    try:
        raw = _load_raw_subtitles(input_path)
        cues = split_subtitles(raw, args.max_words)
        payload = [c.to_dict() for c in cues]
        validate_cues(payload)
    except SegmentationError as exc:
        _fail(str(exc))
    except (ValueError, KeyError) as exc:
        _fail("Invalid subtitles file: {}".format(exc))
    except jsonschema.ValidationError as exc:
        _fail("Invalid subtitles file: {}".format(exc.message))

    _write_json({"subtitles": payload}, Path(args.output) if args.output else None)
    _status("{} source subtitles → {} cues".format(len(raw), len(cues)))


# ---------------------------------------------------------------------------
# render
# ---------------------------------------------------------------------------


def _cmd_render(args: argparse.Namespace) -> None:
    from caption_studio.render import (
        CommandRenderBackend,
        RenderError,
        estimate_render_seconds,
        get_render_mode,
        stage_from_progress,
    )

    try:
        project = VideoProject.from_dict(
            json.loads(Path(args.project_file).read_text(encoding="utf-8"))
        )
        mode = get_render_mode(args.mode)
        backend = CommandRenderBackend(args.command)
    except (OSError, ValueError, KeyError) as exc:
        _fail(str(exc))

    _status("Rendering {} ({}, ~{}s)".format(
        project.id, mode.name, estimate_render_seconds(project.video_duration, mode)
    ))

    def on_progress(fraction: float) -> None:
        _status("  {:>3}% {}".format(round(fraction * 100), stage_from_progress(fraction)))

    try:
        url = backend.render(project, mode, on_progress)
    except RenderError as exc:
        _fail(str(exc))
    print(url)


# ---------------------------------------------------------------------------
# serve
# ---------------------------------------------------------------------------


def _cmd_serve(args: argparse.Namespace) -> None:
    from caption_studio.server.app import run_api

    run_api(host=args.host, port=args.port)


def build_parser() -> argparse.ArgumentParser:
    """Build the argparse parser (separate from main() so tests can inspect it)."""
    parser = argparse.ArgumentParser(
        prog="caption-studio",
        description="Generate, re-segment and render word-timed video captions.",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable debug logging.",
    )
    sub = parser.add_subparsers(dest="command_name", required=True)

    transcribe = sub.add_parser("transcribe", help="Transcribe a video into caption cues.")
    transcribe.add_argument("input_file", help="Path to the video or audio file.")
    transcribe.add_argument(
        "--language",
        default=DEFAULT_LANGUAGE_CODE,
        help="Spoken language code (default: %(default)s).",
    )
    transcribe.add_argument(
        "--max-words",
        type=int,
        default=DEFAULT_MAX_WORDS_PER_CUE,
        help="Maximum words per cue (default: %(default)s).",
    )
    transcribe.add_argument(
        "--output",
        default=None,
        help="Output JSON path (default: {stem}-subtitles.json next to the input).",
    )
    transcribe.set_defaults(func=_cmd_transcribe)

    resegment = sub.add_parser("resegment", help="Re-split saved subtitles.")
    resegment.add_argument("input_file", help="JSON file from 'transcribe' or a cue list.")
    resegment.add_argument(
        "--max-words",
        type=int,
        required=True,
        help="Maximum words per cue.",
    )
    resegment.add_argument("--output", default=None, help="Output JSON path (default: stdout).")
    resegment.set_defaults(func=_cmd_resegment)

    render = sub.add_parser("render", help="Render a captioned video from a project file.")
    render.add_argument("project_file", help="VideoProject JSON file.")
    render.add_argument("--mode", default="optimized", help="Render mode (default: %(default)s).")
    render.add_argument(
        "--command",
        default=None,
        help="Render command (default: RENDER_COMMAND from the environment).",
    )
    render.set_defaults(func=_cmd_render)

    serve = sub.add_parser("serve", help="Run the HTTP API.")
    serve.add_argument("--host", default="0.0.0.0", help="Bind address (default: %(default)s).")
    serve.add_argument("--port", type=int, default=8000, help="Port (default: %(default)s).")
    serve.set_defaults(func=_cmd_serve)

    return parser


def main(argv: Optional[List[str]] = None) -> None:
    """Entry point for ``caption-studio`` and ``python -m caption_studio``."""
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    args.func(args)


if __name__ == "__main__":
    main()
