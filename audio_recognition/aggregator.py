"""
Candidate Aggregator

Fuses recognition results from every chunk and both signals into a ranked
top-N candidate list plus one promoted "best" answer.
"""

import asyncio
from typing import Optional, List, Callable

from logging_config import get_logger
from .models import Candidate, RecognitionResult

logger = get_logger(__name__)


class CandidateAggregator:
    """
    Scores and ranks song candidates.

    - Repeat sightings of the same identity reinforce its score (capped)
    - Only the MAX_CANDIDATES highest scores are kept
    - The displayed best answer only changes when a candidate beats it by
      more than PROMOTION_MARGIN, so near-tied guesses do not flap
    """

    MAX_CANDIDATES = 5
    REINFORCEMENT = 0.03
    MAX_SCORE = 0.98
    PROMOTION_MARGIN = 0.05
    CONFIDENT_SCORE = 0.90

    def __init__(self, on_status: Optional[Callable[[str], None]] = None):
        self.on_status = on_status
        self._lock = asyncio.Lock()
        self._candidates: List[Candidate] = []
        self._best_result: Optional[RecognitionResult] = None
        self._best_score = 0.0
        self._status_message = ""

    @property
    def candidates(self) -> List[Candidate]:
        return list(self._candidates)

    @property
    def best_result(self) -> Optional[RecognitionResult]:
        return self._best_result

    @property
    def best_score(self) -> float:
        return self._best_score

    @property
    def status_message(self) -> str:
        return self._status_message

    def get(self, key: str) -> Optional[Candidate]:
        for candidate in self._candidates:
            if candidate.key == key:
                return candidate
        return None

    def reset(self) -> None:
        self._candidates = []
        self._best_result = None
        self._best_score = 0.0
        self._status_message = ""

    def hide_best(self) -> None:
        """
        Stop displaying the promoted answer. The ranked list and the best
        score are kept, so a later promotion still has to clear the margin.
        """
        self._best_result = None

    async def observe(self, result: RecognitionResult, confidence: float) -> Candidate:
        """
        Record one observation. Concurrent callers are serialized so the
        re-sort and promotion happen atomically per observation.

        Returns:
            The candidate entry for this result after scoring
        """
        async with self._lock:
            return self._observe(result, confidence)

    def _observe(self, result: RecognitionResult, confidence: float) -> Candidate:
        key = result.key
        existing = self.get(key)

        if existing:
            score = min(self.MAX_SCORE, max(existing.score, confidence) + self.REINFORCEMENT)
        else:
            score = confidence

        candidate = Candidate.from_result(result, score)
        others = [item for item in self._candidates if item.key != key]
        # Stable sort: on ties the newest observation ranks first
        self._candidates = sorted([candidate] + others, key=lambda item: item.score, reverse=True)
        self._candidates = self._candidates[:self.MAX_CANDIDATES]

        logger.debug(f"Observed {result} at {confidence:.2f} -> score {score:.2f}")

        top = self._candidates[0]
        if top.score >= self.CONFIDENT_SCORE:
            self._set_status(f"Confident result: {top.title}")

        if top.score > self._best_score + self.PROMOTION_MARGIN:
            logger.info(f"Promoted best result: {top.result} ({self._best_score:.2f} -> {top.score:.2f})")
            self._best_result = top.result
            self._best_score = top.score

        return candidate

    def _set_status(self, message: str) -> None:
        self._status_message = message
        if self.on_status:
            try:
                self.on_status(message)
            except Exception as e:
                logger.error(f"Status callback failed: {e}")
