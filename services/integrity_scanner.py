"""Integrity scanner — flags copied work across the whole submission pool.

Each pass recomputes the scanner-owned flags from scratch:

1. Undo the previous pass: clear ``plagiarism_detected`` and the matched
   fields, restore the judge's suspicion level, and drop analyses the
   scanner created itself.
2. Compare every unordered pair of graded submissions by the Jaccard index
   of their lower-cased, whitespace-split transcription word sets.  Pairs
   where either transcription is too short are skipped.
3. Flag both sides of a pair whose similarity is strictly above the
   threshold and append one warning line to each summary, guarded by a
   marker so repeated scans never duplicate it.
4. Write back every submission whose integrity state changed.

The pass works on a snapshot taken at its start, ordered by submission
time, so the outcome for a given store content is deterministic.  When one
submission matches several others, its matched fields name the last
counterpart in that order, so with three or more copies the references
need not point back at each other (A -> C while C -> B).
"""

from __future__ import annotations

import logging
from itertools import combinations

from config.settings import Settings, get_settings
from models.grading import IntegrityAnalysis, SuspicionLevel
from models.request import ScanReport
from models.submission import Submission
from services.submission_store import SubmissionStore

logger = logging.getLogger(__name__)

WARNING_MARKER = "[SYSTEM WARNING]"


def tokenize(text: str) -> set[str]:
    return set(text.lower().split())


def jaccard_similarity(text1: str, text2: str) -> float | None:
    """Shared / total distinct words.  ``None`` when both texts are empty."""
    tokens1 = tokenize(text1)
    tokens2 = tokenize(text2)
    union = tokens1 | tokens2
    if not union:
        return None
    return len(tokens1 & tokens2) / len(union)


def build_warning(counterpart_name: str, threshold: float) -> str:
    return (
        f"\n\n{WARNING_MARKER}: Copied content detected (over {threshold:.0%} overlap) "
        f"with student {counterpart_name}. Please review this submission manually."
    )


def _integrity_state(submission: Submission) -> tuple[dict | None, str] | None:
    result = submission.result
    if result is None:
        return None
    analysis = result.integrity_analysis
    return (analysis.model_dump() if analysis else None, result.summary)


class IntegrityScanner:
    """Pairwise transcription similarity check over the submission store."""

    def __init__(self, store: SubmissionStore, settings: Settings | None = None) -> None:
        settings = settings or get_settings()
        self._store = store
        self._threshold = settings.similarity_threshold
        self._min_length = settings.min_comparable_length

    def is_match(self, text1: str, text2: str) -> bool:
        if len(text1) <= self._min_length or len(text2) <= self._min_length:
            return False
        similarity = jaccard_similarity(text1, text2)
        return similarity is not None and similarity > self._threshold

    async def scan(self) -> ScanReport:
        """Run one full pass and persist every submission whose flags changed."""
        snapshot = await self._store.get_all()
        before = {s.id: _integrity_state(s) for s in snapshot}

        for submission in snapshot:
            if submission.result is not None:
                submission.result.clear_integrity_match()

        graded = [s for s in snapshot if s.result is not None]
        flagged_pairs = 0
        flagged_ids: set[str] = set()
        for first, second in combinations(graded, 2):
            if not self.is_match(first.transcription, second.transcription):
                continue
            flagged_pairs += 1
            self._flag(first, counterpart=second)
            self._flag(second, counterpart=first)
            flagged_ids.update((first.id, second.id))

        updated = [s for s in snapshot if _integrity_state(s) != before[s.id]]
        for submission in updated:
            await self._store.put(submission)

        logger.info(
            "Integrity scan complete: %d submission(s), %d flagged pair(s), %d updated",
            len(snapshot), flagged_pairs, len(updated),
        )
        return ScanReport(
            flagged_pairs=flagged_pairs,
            flagged_submission_ids=[s.id for s in snapshot if s.id in flagged_ids],
            updated_submission_ids=[s.id for s in updated],
            scanned=len(snapshot),
        )

    def _flag(self, submission: Submission, counterpart: Submission) -> None:
        result = submission.result
        if result.integrity_analysis is None:
            result.integrity_analysis = IntegrityAnalysis(
                is_suspicious=True,
                suspicion_level=SuspicionLevel.HIGH,
                reasons=[],
                scanner_created=True,
            )
        result.integrity_analysis.mark_match(counterpart.student_name, counterpart.id)
        result.append_summary_warning(
            WARNING_MARKER, build_warning(counterpart.student_name, self._threshold)
        )
