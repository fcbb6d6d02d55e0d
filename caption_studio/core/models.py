"""Caption data model: words, cues, the segment view, style, and render project.

WHY: The provider, the segmenter, the editor history, and the renderer all
exchange the same few records. Keeping them as typed dataclasses with
explicit JSON mappings avoids drift between the two field-naming
conventions in use (``start``/``end`` for cues, ``startTime``/``endTime``
for the editor's segment view).

HOW: Dataclasses form a small hierarchy:
  Word          : one timed word (immutable)
  Subtitle      : one display cue, optionally carrying its words
  SubtitleStyle : the global caption look (opaque to segmenter and history)
  VideoProject  : everything the renderer needs for one captioned video
The segment view is not a second type: subtitle_to_segment() and
segment_to_subtitle() convert one canonical Subtitle to and from it.

RULES:
- All times are float seconds
- Word is frozen; edits produce new Word values via dataclasses.replace
- Cue text is the space-joined text of its words whenever words are present
- JSON keys are camelCase; optional keys are omitted when unset
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from typing import Any, Dict, List, Optional, Union

from caption_studio import config

WORD_COLORS = frozenset({"red", "green", "yellow"})
"""Highlight colors an editor may assign to a single word."""


def _to_camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part[:1].upper() + part[1:] for part in rest)


@dataclass(frozen=True)
class Word:
    """A single timed word from the transcription provider.

    RULES:
    - start/end: float seconds, start >= 0 and end > start for provider words
    - confidence: float in [0, 1]
    - color: one of WORD_COLORS or None (editor highlight)
    - line_break: True forces a visual line break after this word
    """

    text: str
    start: float
    end: float
    confidence: float
    color: Optional[str] = None
    line_break: bool = False

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "text": self.text,
            "start": self.start,
            "end": self.end,
            "confidence": self.confidence,
        }
        if self.color is not None:
            data["color"] = self.color
        if self.line_break:
            data["lineBreak"] = True
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Word:
        return cls(
            text=data["text"],
            start=float(data["start"]),
            end=float(data["end"]),
            confidence=float(data["confidence"]),
            color=data.get("color"),
            line_break=bool(data.get("lineBreak", False)),
        )


@dataclass
class Subtitle:
    """One display cue.

    WHY: The renderer shows one cue at a time; the editor lists them. A cue
    optionally keeps its words so word-level highlight and re-segmentation
    remain possible.

    RULES:
    - id: unique within one list; None only for upstream input lacking ids
    - start == words[0].start and end == words[-1].end when words is non-empty
    - text == " ".join(w.text for w in words) when words is present
    - style: optional per-cue style override (editor segment view)
    """

    id: Optional[str]
    text: str
    start: float
    end: float
    words: Optional[List[Word]] = None
    style: Optional[Dict[str, Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "id": self.id,
            "text": self.text,
            "start": self.start,
            "end": self.end,
        }
        if self.words is not None:
            data["words"] = [w.to_dict() for w in self.words]
        if self.style is not None:
            data["style"] = dict(self.style)
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Subtitle:
        raw_words = data.get("words")
        return cls(
            id=data.get("id"),
            text=data.get("text", ""),
            start=float(data["start"]),
            end=float(data["end"]),
            words=[Word.from_dict(w) for w in raw_words] if raw_words is not None else None,
            style=dict(data["style"]) if data.get("style") is not None else None,
        )


def join_word_text(words: List[Word]) -> str:
    """Display text of a word sequence: texts joined by single spaces."""
    return " ".join(w.text for w in words)


# ---------------------------------------------------------------------------
# Segment view adapters
# ---------------------------------------------------------------------------


def subtitle_to_segment(subtitle: Subtitle) -> Dict[str, Any]:
    """Render a cue in the editor's segment view (startTime/endTime)."""
    data: Dict[str, Any] = {
        "id": subtitle.id,
        "startTime": subtitle.start,
        "endTime": subtitle.end,
        "text": subtitle.text,
    }
    if subtitle.words is not None:
        data["words"] = [w.to_dict() for w in subtitle.words]
    if subtitle.style is not None:
        data["style"] = dict(subtitle.style)
    return data


def segment_to_subtitle(segment: Dict[str, Any]) -> Subtitle:
    """Parse a segment-view dict back into the canonical Subtitle."""
    raw_words = segment.get("words")
    return Subtitle(
        id=segment.get("id"),
        text=segment.get("text", ""),
        start=float(segment["startTime"]),
        end=float(segment["endTime"]),
        words=[Word.from_dict(w) for w in raw_words] if raw_words is not None else None,
        style=dict(segment["style"]) if segment.get("style") is not None else None,
    )


# ---------------------------------------------------------------------------
# Style
# ---------------------------------------------------------------------------


@dataclass
class SubtitleStyle:
    """Global caption look shared by every cue of a project.

    WHY: The renderer needs a complete style record, while API clients
    usually send only the handful of fields they changed. Defaults live
    here so a partial dict always expands to a complete style.

    HOW: Field names are snake_case in Python and camelCase on the wire.
    from_dict() overlays known camelCase keys on the defaults.

    RULES:
    - Segmenter and history never read individual fields
    - Unknown keys in from_dict() are ignored
    """

    font_size: int = 36
    font_family: str = "Arial"
    font_weight: str = "bold"
    font_style: str = "normal"
    text_decoration: str = "none"
    text_transform: str = "none"
    color: str = "#FFFFFF"

    background_color: str = "transparent"
    background_opacity: float = 0
    padding: int = 12
    border_radius: int = 8

    position: str = "middle"
    offset_y: float = 50

    shadow: str = "medium"
    shadow_color: str = "#000000"
    shadow_blur: int = 4

    stroke_weight: str = "none"
    stroke_pixels: int = 0
    stroke_color: str = "#000000"
    punctuation: bool = True
    emoji_animation: bool = True

    word_highlight: str = "zoom"
    word_background_color: str = "#FF6B35"
    word_background_opacity: float = 1
    word_spacing: float = 0.12
    text_movement: bool = False

    neon_enabled: bool = False
    neon_color: str = "#00FF00"
    neon_intensity: float = 2

    animation_in: str = "fade"
    animation_out: str = "fade"
    animation_duration: float = 0.12
    animation: bool = True

    auto_emojis: bool = True
    line_height: float = 1.4

    highlight_words: Union[bool, List[str]] = False

    def to_dict(self) -> Dict[str, Any]:
        data = {}
        for f in fields(self):
            value = getattr(self, f.name)
            data[_to_camel(f.name)] = list(value) if isinstance(value, list) else value
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> SubtitleStyle:
        by_camel = {_to_camel(f.name): f.name for f in fields(cls)}
        kwargs = {by_camel[key]: value for key, value in data.items() if key in by_camel}
        return cls(**kwargs)


def style_to_dict(style: Any) -> Any:
    """JSON-ready form of a style value (SubtitleStyle or plain dict)."""
    if isinstance(style, SubtitleStyle):
        return style.to_dict()
    return style


# ---------------------------------------------------------------------------
# Render project
# ---------------------------------------------------------------------------


@dataclass
class VideoProject:
    """Input handed to the render collaborator.

    RULES:
    - video_duration in seconds, width/height in pixels
    - fps defaults to config.DEFAULT_FPS, read when the project is built
    - brightness/contrast/saturation are percentages, omitted when None
    """

    id: str
    video_url: str
    video_duration: float
    subtitles: List[Subtitle]
    style: Union[SubtitleStyle, Dict[str, Any]]
    width: int
    height: int
    fps: int = field(default_factory=lambda: config.DEFAULT_FPS)
    brightness: Optional[float] = None
    contrast: Optional[float] = None
    saturation: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "id": self.id,
            "videoUrl": self.video_url,
            "videoDuration": self.video_duration,
            "subtitles": [s.to_dict() for s in self.subtitles],
            "style": style_to_dict(self.style),
            "width": self.width,
            "height": self.height,
            "fps": self.fps,
        }
        for key in ("brightness", "contrast", "saturation"):
            value = getattr(self, key)
            if value is not None:
                data[key] = value
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> VideoProject:
        style = data.get("style") or {}
        return cls(
            id=data["id"],
            video_url=data["videoUrl"],
            video_duration=float(data["videoDuration"]),
            subtitles=[Subtitle.from_dict(s) for s in data.get("subtitles", [])],
            style=SubtitleStyle.from_dict(style) if isinstance(style, dict) else style,
            width=int(data["width"]),
            height=int(data["height"]),
            fps=int(data.get("fps", config.DEFAULT_FPS)),
            brightness=data.get("brightness"),
            contrast=data.get("contrast"),
            saturation=data.get("saturation"),
        )
