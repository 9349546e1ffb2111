"""Tests for transcript normalization, query synthesis and lyrics search"""
from unittest.mock import Mock

import pytest

import lyrics
from audio_recognition.errors import LyricsSearchFailed
from audio_recognition.models import RecognitionSource
from conftest import make_result


class TestNormalizeLyrics:
    def test_strips_punctuation_and_collapses_whitespace(self):
        assert lyrics.normalize_lyrics("  Hello,   world!!  How's   it going? ") == "Hello world How s it going"

    def test_keeps_non_latin_letters(self):
        assert lyrics.normalize_lyrics("Tôi đang hát... một bài hát!") == "Tôi đang hát một bài hát"
        assert lyrics.normalize_lyrics("夜に駆ける、♪") == "夜に駆ける"

    def test_keeps_digits_and_drops_underscores(self):
        assert lyrics.normalize_lyrics("99 red_balloons") == "99 red balloons"

    def test_idempotent(self):
        text = "Don't stop - believin'! Hold on to that feelin'..."
        once = lyrics.normalize_lyrics(text)
        assert lyrics.normalize_lyrics(once) == once

    def test_empty(self):
        assert lyrics.normalize_lyrics("") == ""
        assert lyrics.normalize_lyrics("?!...") == ""


class TestBuildSearchQueries:
    def test_query_order(self):
        cleaned = "toi dang hat mot bai hat rat hay ve mua thu ha noi"
        queries = lyrics.build_search_queries(cleaned)

        assert queries[0] == cleaned
        assert len(queries[1].split(" ")) <= 8
        assert queries == [
            cleaned,
            "toi dang hat mot bai hat rat hay",
            "mot bai hat rat hay mua thu noi",
            "dang toi hat mot bai rat",
        ]

    def test_drops_short_and_duplicate_queries(self):
        assert lyrics.build_search_queries("one two three") == [
            "one two three",
            "two three",
            "three one two",
        ]

    def test_too_short_for_any_query(self):
        assert lyrics.build_search_queries("hello") == []

    def test_all_queries_are_long_enough_and_unique(self):
        queries = lyrics.build_search_queries("la la la la la la la la la la")
        assert len(queries) == len(set(queries))
        assert all(len(query) >= lyrics.MIN_QUERY_LENGTH for query in queries)


class TestEstimateLyricsScore:
    @pytest.mark.parametrize("words, expected", [
        (0, 0.4),
        (4, 0.48),
        (10, 0.6),
        (22, 0.84),
        (30, 0.85),
        (200, 0.85),
    ])
    def test_score_grows_with_length_and_is_clamped(self, words, expected):
        cleaned = " ".join(["word"] * words)
        assert lyrics.estimate_lyrics_score(cleaned) == pytest.approx(expected)


class TestSearchSong:
    async def test_returns_first_hit_in_query_order(self):
        hit = make_result("Mua Thu Ha Noi", "Trinh Cong Son", RecognitionSource.LYRICS)
        provider = Mock()
        provider.search.side_effect = [None, hit, make_result("Other")]

        result = await lyrics.search_song(provider, "toi dang hat mot bai hat rat hay ve mua thu ha noi")

        assert result == hit
        assert provider.search.call_count == 2
        first_query = provider.search.call_args_list[0].args[0]
        assert first_query == "toi dang hat mot bai hat rat hay ve mua thu ha noi"

    async def test_no_hits(self):
        provider = Mock()
        provider.search.return_value = None
        assert await lyrics.search_song(provider, "one two three") is None
        assert provider.search.call_count == 3

    async def test_text_too_short_skips_search(self):
        provider = Mock()
        assert await lyrics.search_song(provider, "ab") is None
        provider.search.assert_not_called()

    async def test_provider_failure_propagates(self):
        provider = Mock()
        provider.search.side_effect = LyricsSearchFailed()
        with pytest.raises(LyricsSearchFailed):
            await lyrics.search_song(provider, "one two three four")
