from __future__ import annotations

import pytest

from engine.models import Candidate, Track
from engine.search_scoring import (
    edit_distance,
    is_duration_close,
    normalize_text,
    rank_candidates,
    similarity_score,
    song_similarity,
)


def test_normalize_text_keeps_letters_digits_and_cjk() -> None:
    assert normalize_text("Hello, World! 2024") == "helloworld2024"
    assert normalize_text("晴天 (Live)") == "晴天live"
    assert normalize_text("") == ""
    assert normalize_text(None) == ""


def test_edit_distance_basic_cases() -> None:
    assert edit_distance("kitten", "sitting") == 3
    assert edit_distance("", "abc") == 3
    assert edit_distance("abc", "abc") == 0
    assert edit_distance("晴天", "晴天啊") == 1


def test_similarity_identical_strings_score_one() -> None:
    assert similarity_score("abc", "abc") == 1.0


def test_similarity_empty_strings_score_zero() -> None:
    assert similarity_score("", "") == 0.0
    assert similarity_score("abc", "") == 0.0
    assert similarity_score("", "abc") == 0.0


def test_similarity_is_relative_to_longest_string() -> None:
    assert similarity_score("abcd", "abce") == pytest.approx(0.75)
    assert similarity_score("abc", "xyz") == 0.0


def test_song_similarity_identical_name_and_artist() -> None:
    assert song_similarity("Song", "Artist", "song", "ARTIST") == pytest.approx(1.0)


def test_song_similarity_name_only_when_artist_missing() -> None:
    assert song_similarity("Song", "", "Song", "Other") == pytest.approx(1.0)
    assert song_similarity("Song", "Artist", "Song", "") == pytest.approx(1.0)


def test_song_similarity_weights_name_over_artist() -> None:
    score = song_similarity("Song", "Artist", "Song", "zzzzzz")
    assert score == pytest.approx(0.7)


def test_song_similarity_zero_when_name_normalizes_empty() -> None:
    assert song_similarity("!!!", "Artist", "Song", "Artist") == 0.0


def test_duration_gate_unknown_durations_pass() -> None:
    assert is_duration_close(0, 300)
    assert is_duration_close(200, 0)
    assert is_duration_close(-5, 10)


def test_duration_gate_short_track_uses_fixed_tolerance() -> None:
    assert is_duration_close(60, 70)
    assert not is_duration_close(60, 71)


def test_duration_gate_long_track_scales_with_expected() -> None:
    # 15% of 300 is 45 seconds.
    assert is_duration_close(300, 345)
    assert not is_duration_close(300, 346)


def test_rank_candidates_by_score_then_duration_diff() -> None:
    a = Candidate(Track(id="a"), score=0.8, duration_diff=5)
    b = Candidate(Track(id="b"), score=0.9, duration_diff=30)
    c = Candidate(Track(id="c"), score=0.8, duration_diff=1)
    assert [x.track.id for x in rank_candidates([a, b, c])] == ["b", "c", "a"]


def test_rank_candidates_is_stable_for_ties() -> None:
    first = Candidate(Track(id="first"), score=0.5, duration_diff=2)
    second = Candidate(Track(id="second"), score=0.5, duration_diff=2)
    assert [x.track.id for x in rank_candidates([first, second])] == ["first", "second"]


def test_similarity_is_symmetric() -> None:
    assert similarity_score("abcdef", "abxdefg") == similarity_score("abxdefg", "abcdef")


def test_duration_gate_reference_points() -> None:
    assert is_duration_close(215, 215)
    assert is_duration_close(100, 111)
    assert not is_duration_close(100, 80)
    assert is_duration_close(0, 50)


def test_rank_candidates_reference_order() -> None:
    candidates = [
        Candidate(Track(id="0"), score=0.9, duration_diff=5),
        Candidate(Track(id="1"), score=0.9, duration_diff=2),
        Candidate(Track(id="2"), score=0.5, duration_diff=1),
    ]
    assert [c.track.id for c in rank_candidates(candidates)] == ["1", "0", "2"]
