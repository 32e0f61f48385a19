"""Tests for read-along synchronization."""

import asyncio

import pytest

from audiolearn.client import (
    NO_SEGMENT,
    ReadAlongData,
    ReadAlongSegment,
    ReadAlongSync,
    find_active_segment,
    should_scroll,
)


def sentence(index, start, end, text="Sentence."):
    return ReadAlongSegment(index, "sentence", text, start, end)


def word(index, start, end, text="word"):
    return ReadAlongSegment(index, "word", text, start, end)


@pytest.fixture
def two_sentences():
    return [sentence(0, 0, 5), sentence(1, 5, 10)]


class TestFindActiveSegment:
    """Tests for find_active_segment."""

    def test_inside_window(self, two_sentences):
        assert find_active_segment(7, two_sentences) == 1

    def test_after_last_falls_back_to_latest_ended(self, two_sentences):
        assert find_active_segment(12, two_sentences) == 1

    def test_before_first(self, two_sentences):
        assert find_active_segment(-1, two_sentences) == NO_SEGMENT

    def test_shared_boundary_picks_first(self, two_sentences):
        assert find_active_segment(5, two_sentences) == 0

    def test_tolerance_widens_window(self):
        segments = [sentence(0, 1, 2), sentence(1, 4, 6)]
        assert find_active_segment(3.95, segments) == 1
        assert find_active_segment(3.0, segments) == 0

    def test_gap_uses_latest_ended(self):
        segments = [sentence(0, 0, 2), sentence(1, 2, 4), sentence(2, 8, 9)]
        assert find_active_segment(6, segments) == 1

    def test_ignores_non_sentences(self):
        segments = [word(0, 0, 1), sentence(1, 2, 3)]
        assert find_active_segment(0.5, segments) == NO_SEGMENT

    def test_empty(self):
        assert find_active_segment(3, []) == NO_SEGMENT


class TestShouldScroll:
    """Tests for should_scroll."""

    def test_fully_visible(self):
        assert should_scroll(100, 150, 0, 400) is False

    def test_partially_hidden(self):
        assert should_scroll(380, 420, 0, 400) is True
        assert should_scroll(-10, 30, 0, 400) is True


class TestReadAlongSync:
    """Tests for the stateful tracker."""

    def make_sync(self, segments, **kwargs):
        data = ReadAlongData("c1", "text", True, segments)
        return ReadAlongSync(data, **kwargs)

    def test_recompute_fires_on_change_once(self, two_sentences):
        changes = []
        sync = self.make_sync(two_sentences, on_change=changes.append)

        sync.recompute(1)
        sync.recompute(2)
        sync.recompute(7)

        assert changes == [0, 1]
        assert sync.is_segment_active(1)

    @pytest.mark.asyncio
    async def test_debounce_uses_latest_time(self, two_sentences):
        changes = []
        sync = self.make_sync(two_sentences, debounce=0.01, on_change=changes.append)

        sync.on_time_update(1)
        sync.on_time_update(2)
        sync.on_time_update(7)
        assert changes == []

        await asyncio.sleep(0.03)
        assert changes == [1]

    @pytest.mark.asyncio
    async def test_cancel_drops_pending(self, two_sentences):
        changes = []
        sync = self.make_sync(two_sentences, debounce=0.01, on_change=changes.append)

        sync.on_time_update(7)
        sync.cancel()
        await asyncio.sleep(0.03)
        assert changes == []

    def test_words_within_active_sentence_highlighted(self):
        segments = [
            sentence(0, 0, 3),
            word(1, 0, 1),
            word(2, 1, 3),
            sentence(3, 3, 6),
            word(4, 3, 6),
        ]
        sync = self.make_sync(segments)

        sync.recompute(1.5)
        assert sync.is_word_highlighted(1)
        assert sync.is_word_highlighted(2)
        assert not sync.is_word_highlighted(4)

        sync.recompute(-5)
        assert sync.highlighted_words == set()

    def test_seek_to_segment(self, two_sentences):
        sync = self.make_sync(two_sentences)
        assert sync.seek_to_segment(1) == 5
        assert sync.seek_to_segment(9) is None

    def test_display_segments(self):
        segments = [sentence(1, 5, 10, "  Second.  "), sentence(0, 0, 5, "First."), word(2, 0, 1)]
        sync = self.make_sync(segments)

        display = sync.display_segments()
        assert [d.content for d in display] == ["First.", "Second."]
        assert display[1].start_time == 5

    def test_scroll_respects_auto_scroll_and_active(self, two_sentences):
        sync = self.make_sync(two_sentences)
        assert sync.should_scroll_to_active(500, 550, 0, 400) is False

        sync.recompute(7)
        assert sync.should_scroll_to_active(500, 550, 0, 400) is True
        assert sync.should_scroll_to_active(100, 150, 0, 400) is False

        sync.auto_scroll = False
        assert sync.should_scroll_to_active(500, 550, 0, 400) is False

    def test_has_read_along(self, two_sentences):
        assert self.make_sync(two_sentences).has_read_along is True
        assert ReadAlongSync(ReadAlongData("c1")).has_read_along is False

    def test_from_dict(self):
        data = ReadAlongData.from_dict(
            {
                "chapter_id": "c1",
                "text_content": None,
                "has_read_along": True,
                "segments": [
                    {
                        "segment_index": 0,
                        "segment_type": "sentence",
                        "text": "Hi.",
                        "start_time": 0,
                        "end_time": 1.5,
                    }
                ],
            }
        )
        assert data.text_content == ""
        assert data.segments[0].end_time == 1.5
        assert data.segments[0].word_index is None
