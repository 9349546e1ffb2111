"""
Lyrics text handling: transcript normalization, search-query synthesis and
the lyrics search loop used by the final recognition pass.
"""

import asyncio
import re
from typing import List, Optional

from audio_recognition.models import RecognitionResult
from logging_config import get_logger

logger = get_logger(__name__)

# Anything that is not a letter, digit or whitespace in any script
_NON_WORD_RE = re.compile(r"[^\w\s]|_")
_WHITESPACE_RE = re.compile(r"\s+")

MIN_QUERY_LENGTH = 6
MIN_KEYWORD_LENGTH = 3
PHRASE_WORDS = 8
KEYWORD_COUNT = 6
MIN_SEARCH_TEXT_LENGTH = 3

LYRICS_SCORE_BASE = 0.4
LYRICS_SCORE_PER_WORD = 0.02
LYRICS_SCORE_BONUS_CAP = 0.45
LYRICS_SCORE_MAX = 0.85


def normalize_lyrics(text: str) -> str:
    """
    Strip punctuation and symbols from a transcript.

    Every character that is not a Unicode letter, digit or whitespace becomes a
    space, whitespace runs collapse to one space, and the ends are trimmed.
    """
    no_punctuation = _NON_WORD_RE.sub(" ", text or "")
    return _WHITESPACE_RE.sub(" ", no_punctuation).strip()


def _unique(items: List[str]) -> List[str]:
    return list(dict.fromkeys(items))


def build_search_queries(cleaned: str) -> List[str]:
    """
    Build alternative lyrics-search strings from a normalized transcript.

    Order, most specific first: the full text, the first phrase, a phrase from
    a third of the way in (recovers from a bad start of capture), and the
    longest distinct words as a keyword fallback. Strings shorter than
    MIN_QUERY_LENGTH are dropped and duplicates removed, keeping first-seen order.
    """
    words = [word for word in cleaned.split(" ") if len(word) >= MIN_KEYWORD_LENGTH]
    unique_words = _unique(words)
    top_keywords = sorted(unique_words, key=len, reverse=True)[:KEYWORD_COUNT]

    first_phrase = " ".join(words[:PHRASE_WORDS])
    middle_start = len(words) // 3
    middle_phrase = " ".join(words[middle_start:max(PHRASE_WORDS, middle_start + PHRASE_WORDS)])

    queries = [
        cleaned,
        first_phrase,
        middle_phrase,
        " ".join(top_keywords),
    ]
    queries = [query.strip() for query in queries]
    return _unique([query for query in queries if len(query) >= MIN_QUERY_LENGTH])


def count_words(text: str) -> int:
    return len([word for word in text.split(" ") if word])


def estimate_lyrics_score(cleaned: str) -> float:
    """Confidence for a lyrics-search hit: longer transcripts are more trustworthy."""
    score = LYRICS_SCORE_BASE + min(LYRICS_SCORE_BONUS_CAP, count_words(cleaned) * LYRICS_SCORE_PER_WORD)
    return min(LYRICS_SCORE_MAX, max(LYRICS_SCORE_BASE, score))


async def search_song(provider, cleaned: str) -> Optional[RecognitionResult]:
    """
    Try each synthesized query against the lyrics provider in order.

    Returns the first hit, or None if every query came back empty. Provider
    errors (LyricsSearchFailed) propagate and end the search.
    """
    if not cleaned or len(cleaned) < MIN_SEARCH_TEXT_LENGTH:
        logger.info("Not enough text to search")
        return None

    queries = build_search_queries(cleaned)
    for index, query in enumerate(queries, start=1):
        logger.debug(f"Lyrics search {index}/{len(queries)}: {query}")
        result = await asyncio.to_thread(provider.search, query)
        if result:
            return result

    logger.info(f"No lyrics match after {len(queries)} queries")
    return None
