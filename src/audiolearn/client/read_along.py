"""Read-along synchronization: map playback time to the highlighted text segment."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Sequence

import structlog

logger = structlog.get_logger(__name__)

# Seconds of slack on both edges of a segment window.
DEFAULT_TOLERANCE = 0.1
# Delay coalescing bursts of time updates before recomputing.
DEFAULT_DEBOUNCE = 0.01

NO_SEGMENT = -1


@dataclass
class ReadAlongSegment:
    """A timed span of text, ``[start_time, end_time)`` in seconds."""

    segment_index: int
    segment_type: str
    text: str
    start_time: float
    end_time: float
    word_index: int | None = None
    character_start: int | None = None
    character_end: int | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ReadAlongSegment:
        return cls(
            segment_index=int(data["segment_index"]),
            segment_type=data["segment_type"],
            text=data["text"],
            start_time=float(data["start_time"]),
            end_time=float(data["end_time"]),
            word_index=data.get("word_index"),
            character_start=data.get("character_start"),
            character_end=data.get("character_end"),
        )


@dataclass
class ReadAlongData:
    """Chapter text plus its timed segments."""

    chapter_id: str
    text_content: str = ""
    has_read_along: bool = False
    segments: list[ReadAlongSegment] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ReadAlongData:
        return cls(
            chapter_id=data["chapter_id"],
            text_content=data.get("text_content") or "",
            has_read_along=bool(data.get("has_read_along")),
            segments=[ReadAlongSegment.from_dict(s) for s in data.get("segments", [])],
        )


@dataclass
class DisplaySegment:
    """A sentence prepared for rendering as its own paragraph."""

    segment_index: int
    content: str
    start_time: float
    end_time: float


def sentence_segments(segments: Iterable[ReadAlongSegment]) -> list[ReadAlongSegment]:
    """Sentence-level segments in playback order."""
    return sorted(
        (s for s in segments if s.segment_type == "sentence"),
        key=lambda s: (s.start_time, s.segment_index),
    )


def find_active_segment(
    time: float,
    segments: Sequence[ReadAlongSegment],
    tolerance: float = DEFAULT_TOLERANCE,
) -> int:
    """Resolve the sentence segment to highlight at ``time``.

    Scans sentences in order and returns the first whose window, widened
    by ``tolerance`` on both edges, contains ``time``. If none does, the
    latest sentence that already ended is returned.

    Returns:
        segment_index of the active segment, or NO_SEGMENT (-1) when
        ``time`` precedes every sentence or there are none.
    """
    sentences = sentence_segments(segments)
    for segment in sentences:
        if segment.start_time - tolerance <= time <= segment.end_time + tolerance:
            return segment.segment_index

    for segment in reversed(sentences):
        if time > segment.end_time:
            return segment.segment_index

    return NO_SEGMENT


def should_scroll(
    element_top: float,
    element_bottom: float,
    container_top: float,
    container_bottom: float,
) -> bool:
    """False when the element is already fully inside the visible container."""
    fully_visible = element_top >= container_top and element_bottom <= container_bottom
    return not fully_visible


class ReadAlongSync:
    """Tracks the active segment as playback time advances.

    ``on_time_update`` is cheap to call on every tick: recomputation is
    deferred by ``debounce`` seconds and only the latest time is used.
    ``on_change`` fires with the new segment index whenever it changes.
    """

    def __init__(
        self,
        data: ReadAlongData,
        *,
        tolerance: float = DEFAULT_TOLERANCE,
        debounce: float = DEFAULT_DEBOUNCE,
        on_change: Callable[[int], None] | None = None,
    ):
        self.data = data
        self.tolerance = tolerance
        self.debounce = debounce
        self.on_change = on_change
        self.auto_scroll = True

        self.active_index = NO_SEGMENT
        self.highlighted_words: set[int] = set()
        self._by_index = {s.segment_index: s for s in data.segments}
        self._latest_time = 0.0
        self._handle: asyncio.TimerHandle | None = None

    @property
    def has_read_along(self) -> bool:
        return self.data.has_read_along and bool(self.data.segments)

    def on_time_update(self, time: float) -> None:
        """Schedule a recomputation for ``time``, replacing any pending one."""
        self._latest_time = time
        if self._handle is not None:
            self._handle.cancel()
        loop = asyncio.get_running_loop()
        self._handle = loop.call_later(self.debounce, self._fire)

    def _fire(self) -> None:
        self._handle = None
        self.recompute(self._latest_time)

    def cancel(self) -> None:
        """Drop any scheduled recomputation."""
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def recompute(self, time: float) -> int:
        """Resolve the active segment for ``time`` immediately."""
        new_index = find_active_segment(time, self.data.segments, self.tolerance)
        if new_index != self.active_index:
            self.active_index = new_index
            self._update_highlighted_words(new_index)
            logger.debug("read_along.active_changed", index=new_index, time=time)
            if self.on_change is not None:
                self.on_change(new_index)
        return self.active_index

    def _update_highlighted_words(self, index: int) -> None:
        active = self._by_index.get(index)
        if active is None:
            self.highlighted_words = set()
        elif active.segment_type == "word":
            self.highlighted_words = self.highlighted_words | {index}
        else:
            self.highlighted_words = {
                s.segment_index
                for s in self.data.segments
                if s.segment_type == "word"
                and s.start_time >= active.start_time
                and s.end_time <= active.end_time
            }

    def is_segment_active(self, segment_index: int) -> bool:
        return segment_index == self.active_index

    def is_word_highlighted(self, word_index: int) -> bool:
        return word_index in self.highlighted_words

    def seek_to_segment(self, segment_index: int) -> float | None:
        """Start time of a segment, for click-to-play. None if unknown."""
        segment = self._by_index.get(segment_index)
        return segment.start_time if segment else None

    def display_segments(self) -> list[DisplaySegment]:
        """Sentences ordered by index with surrounding whitespace stripped."""
        sentences = sorted(
            (s for s in self.data.segments if s.segment_type == "sentence"),
            key=lambda s: s.segment_index,
        )
        return [
            DisplaySegment(
                segment_index=s.segment_index,
                content=s.text.strip(),
                start_time=s.start_time,
                end_time=s.end_time,
            )
            for s in sentences
        ]

    def should_scroll_to_active(
        self,
        element_top: float,
        element_bottom: float,
        container_top: float,
        container_bottom: float,
    ) -> bool:
        """Whether the view should scroll to the active segment."""
        if not self.auto_scroll or self.active_index == NO_SEGMENT:
            return False
        return should_scroll(element_top, element_bottom, container_top, container_bottom)
