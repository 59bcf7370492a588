"""Tests for transcription filtering, alignment and aggregation."""
import pytest

from recallix.models import ChunkResult, Level, LevelSummary, ReviewItem, Session, TextSegment
from recallix.scoring import (
    build_report,
    build_review_items,
    chunk_accuracy,
    filter_transcription,
    finalize_chunk,
    format_timer,
    is_denylisted,
    missed_words,
    round_half_up,
    session_score,
    summarize_level,
)


def _result(accuracy, duration=10, level=Level.PARTIAL_HINT, missed=()):
    return ChunkResult(
        chunk_index=0,
        expected_text="x",
        spoken_text="x",
        accuracy_percent=accuracy,
        missed_words=list(missed),
        duration_seconds=duration,
        level=level,
    )


class TestFilterTranscription:
    def test_keeps_matching_transcription(self, fox_text):
        assert filter_transcription("The quick brown fox", fox_text) == "The quick brown fox"

    @pytest.mark.parametrize(
        "raw",
        [
            "",
            "   ",
            "[silence]",
            "No speech detected in the fox recording",
            "The audio is unintelligible, the fox maybe",
            "Here is the transcription: the quick fox",
            "Only background noise, quick",
        ],
    )
    def test_rejects_empty_and_denylisted(self, raw, fox_text):
        assert filter_transcription(raw, fox_text) == ""

    def test_rejects_without_overlap(self, fox_text):
        assert filter_transcription("lorem ipsum dolor sit", fox_text) == ""

    def test_phrase_in_expected_text_is_not_denylisted(self):
        expected = "Hello darkness my old friend, the sound of silence."
        assert not is_denylisted("the sound of silence", expected)
        assert filter_transcription("the sound of silence", expected) == "the sound of silence"

    @pytest.mark.parametrize("raw", ["[silence]", "Silence.", "(silence)"])
    def test_bare_phrase_rejected_even_if_in_expected_text(self, raw):
        expected = "Hello darkness my old friend, the sound of silence."

        assert is_denylisted(raw, expected)
        assert filter_transcription(raw, expected) == ""

    def test_custom_denylist(self, fox_text):
        assert filter_transcription("thank you the fox", fox_text, denylist=[r"thank you"]) == ""


class TestAlignment:
    def test_positional_pairs(self, fox_text):
        items = build_review_items("the quick red fox", fox_text)

        assert [(i.original_word, i.spoken_word) for i in items] == [
            ("the", "the"),
            ("quick", "quick"),
            ("brown", "red"),
            ("fox", "fox"),
        ]

    def test_missing_words_get_sentinel(self, fox_text):
        items = build_review_items("the quick", fox_text)

        assert [i.spoken_word for i in items] == ["the", "quick", "...", "..."]

    def test_extra_spoken_words_are_dropped(self, fox_text):
        items = build_review_items("the quick brown fox jumps over", fox_text)

        assert len(items) == 4

    def test_count_follows_word_tokens(self):
        items = build_review_items("", "Wait — what?")

        assert [i.original_word for i in items] == ["Wait", "what"]

    def test_skipped_word_shifts_following_words(self, fox_text):
        items = build_review_items("the brown fox", fox_text)

        assert chunk_accuracy(items) == 25


class TestChunkScoring:
    def test_perfect(self, fox_text):
        items = build_review_items("the quick brown fox", fox_text)
        result = finalize_chunk(items, 0, fox_text, 12, Level.PARTIAL_HINT)

        assert result.accuracy_percent == 100
        assert result.missed_words == []
        assert result.spoken_text == "the quick brown fox"
        assert result.duration_seconds == 12

    def test_one_wrong_word(self, fox_text):
        items = build_review_items("the quick red fox", fox_text)
        result = finalize_chunk(items, 0, fox_text, 5, Level.PURE_RECALL)

        assert result.accuracy_percent == 75
        assert result.missed_words == ["brown"]

    def test_silent_chunk_has_no_missed_words(self, fox_text):
        items = build_review_items("", fox_text)
        result = finalize_chunk(items, 0, fox_text, 3, Level.PARTIAL_HINT)

        assert result.accuracy_percent == 0
        assert result.missed_words == []
        assert result.spoken_text == "... ... ... ..."

    def test_partially_silent_chunk_reports_missed(self, fox_text):
        items = build_review_items("the", fox_text)

        assert missed_words(items) == ["quick", "brown", "fox"]

    def test_edited_values_are_used(self, fox_text):
        items = build_review_items("the quick red fox", fox_text)
        items[2].spoken_word = "Brown"

        assert chunk_accuracy(items) == 100
        assert missed_words(items) == []

    def test_missed_words_are_distinct(self):
        items = build_review_items("a b c", "the cat the dog")

        assert missed_words(items) == ["the", "cat", "dog"]

    def test_hundred_only_when_every_word_matches(self):
        items = [ReviewItem(original_word=f"w{i}", spoken_word=f"w{i}") for i in range(199)]
        items.append(ReviewItem(original_word="last", spoken_word="lost"))

        assert chunk_accuracy(items) == 99

    def test_rounds_half_up(self):
        items = build_review_items("a x", "a b c d e f g h")
        # 1 of 8 matched: 12.5%
        assert chunk_accuracy(items) == 13

    def test_no_expected_words(self):
        assert chunk_accuracy([]) == 100


class TestAggregation:
    def test_summarize_level(self):
        summary = summarize_level([_result(100, 10), _result(75, 20), _result(50, 5)])

        assert summary == LevelSummary(accuracy=75, total_duration=35, completed=True)

    def test_summarize_level_without_results(self):
        assert summarize_level([]) is None

    def test_session_score_single_level(self):
        summaries = {
            Level.PARTIAL_HINT: LevelSummary(accuracy=80, total_duration=30, completed=True),
            Level.PURE_RECALL: LevelSummary(),
        }
        assert session_score(summaries) == 80

    def test_session_score_both_levels(self):
        summaries = {
            Level.PARTIAL_HINT: LevelSummary(accuracy=100, completed=True),
            Level.PURE_RECALL: LevelSummary(accuracy=75, completed=True),
        }
        assert session_score(summaries) == 88

    def test_session_score_nothing_completed(self):
        assert session_score({level: LevelSummary() for level in Level}) == 0

    def test_round_half_up(self):
        assert round_half_up(0.5) == 1
        assert round_half_up(2.5) == 3
        assert round_half_up(2.49) == 2

    def test_format_timer(self):
        assert format_timer(0) == "00:00"
        assert format_timer(95) == "01:35"
        assert format_timer(3600) == "60:00"


class TestReport:
    def test_report_contents(self):
        session = Session(segments=[TextSegment(title="t", text="x")])
        session.results = [
            _result(95, missed=["Brown"]),
            _result(60, missed=["brown", "fox"]),
            _result(90),
        ]
        session.level_summaries[Level.PARTIAL_HINT] = summarize_level(session.results)

        report = build_report(session)

        assert report["score"] == 82
        assert report["chunks_completed"] == 3
        assert report["chunks_mastered"] == 2
        assert report["missed_words"] == ["brown", "fox"]
        assert report["level_summaries"]["partial_hint"]["total_time"] == "00:30"
        assert report["level_summaries"]["pure_recall"]["completed"] is False

    def test_missed_words_capped(self):
        session = Session(segments=[])
        session.results = [_result(0, missed=[f"w{i}" for i in range(15)])]

        assert len(build_report(session)["missed_words"]) == 10
