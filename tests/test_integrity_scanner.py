"""Tests for services.integrity_scanner — pairwise copy detection."""

from __future__ import annotations

import pytest

from config.settings import Settings
from models.grading import SuspicionLevel
from models.submission import Submission
from services.integrity_scanner import (
    WARNING_MARKER,
    IntegrityScanner,
    jaccard_similarity,
)

COPIED = "the answer is forty two plus one"


def _words(prefix: str, count: int) -> list[str]:
    return [f"{prefix}{i}" for i in range(count)]


@pytest.fixture
def scanner(submission_store, settings) -> IntegrityScanner:
    return IntegrityScanner(store=submission_store, settings=settings)


async def _put_all(store, *subs: Submission) -> None:
    for sub in subs:
        await store.put(sub)


# ── Similarity ───────────────────────────────────────────────


class TestJaccardSimilarity:
    def test_identical(self):
        assert jaccard_similarity("a b c", "c b a") == 1.0

    def test_case_insensitive(self):
        assert jaccard_similarity("The Answer", "the answer") == 1.0

    def test_disjoint(self):
        assert jaccard_similarity("a b", "c d") == 0.0

    def test_partial(self):
        assert jaccard_similarity("a b c", "b c d") == pytest.approx(0.5)

    def test_both_empty(self):
        assert jaccard_similarity("", "   ") is None


class TestIsMatch:
    def test_threshold_is_exclusive(self, scanner):
        shared = _words("w", 17)
        text1 = " ".join(shared)
        text2 = " ".join(shared + _words("x", 3))
        assert jaccard_similarity(text1, text2) == 0.85
        assert not scanner.is_match(text1, text2)

    def test_just_above_threshold(self, scanner):
        shared = _words("w", 43)
        text1 = " ".join(shared)
        text2 = " ".join(shared + _words("x", 7))
        assert jaccard_similarity(text1, text2) == pytest.approx(0.86)
        assert scanner.is_match(text1, text2)

    def test_short_text_never_compared(self, scanner):
        assert not scanner.is_match("x = 2", "x = 2")
        assert not scanner.is_match("a" * 20, "a" * 20)

    def test_symmetric(self, scanner):
        text1 = COPIED
        text2 = COPIED + " indeed"
        assert scanner.is_match(text1, text2) == scanner.is_match(text2, text1)

    def test_custom_threshold(self, submission_store):
        settings = Settings(_env_file=None, similarity_threshold=0.4, min_comparable_length=5)
        scanner = IntegrityScanner(store=submission_store, settings=settings)
        assert scanner.is_match("alpha beta gamma", "alpha beta delta")


# ── Scan ─────────────────────────────────────────────────────


class TestScan:
    async def test_identical_transcriptions_flag_each_other(
        self, scanner, submission_store, make_graded,
    ):
        ann = make_graded("Ann", COPIED)
        bob = make_graded("Bob", COPIED)
        await _put_all(submission_store, ann, bob)

        report = await scanner.scan()

        assert report.flagged_pairs == 1
        assert set(report.flagged_submission_ids) == {ann.id, bob.id}
        stored_ann = await submission_store.get(ann.id)
        stored_bob = await submission_store.get(bob.id)
        assert stored_ann.result.integrity_analysis.plagiarism_detected
        assert stored_ann.result.integrity_analysis.matched_student_name == "Bob"
        assert stored_ann.result.integrity_analysis.matched_submission_id == bob.id
        assert stored_bob.result.integrity_analysis.matched_student_name == "Ann"
        assert WARNING_MARKER in stored_ann.result.summary
        assert "Bob" in stored_ann.result.summary

    async def test_flagged_analysis_satisfies_invariant(
        self, scanner, submission_store, make_graded,
    ):
        await _put_all(submission_store, make_graded("Ann", COPIED), make_graded("Bob", COPIED))
        await scanner.scan()
        for sub in await submission_store.get_all():
            analysis = sub.result.integrity_analysis
            assert analysis.is_suspicious
            assert analysis.suspicion_level.value == "HIGH"

    async def test_repeated_scans_do_not_duplicate_warning(
        self, scanner, submission_store, make_graded,
    ):
        await _put_all(submission_store, make_graded("Ann", COPIED), make_graded("Bob", COPIED))

        for _ in range(3):
            await scanner.scan()

        for sub in await submission_store.get_all():
            assert sub.result.summary.count(WARNING_MARKER) == 1
            assert sub.result.integrity_analysis.plagiarism_detected

    async def test_rescan_writes_nothing_when_unchanged(
        self, scanner, submission_store, make_graded,
    ):
        await _put_all(submission_store, make_graded("Ann", COPIED), make_graded("Bob", COPIED))
        await scanner.scan()
        report = await scanner.scan()
        assert report.updated_submission_ids == []
        assert report.flagged_pairs == 1

    async def test_different_work_not_flagged(self, scanner, submission_store, make_graded):
        await _put_all(
            submission_store,
            make_graded("Ann", COPIED),
            make_graded("Bob", "completely different working with other numbers"),
        )
        report = await scanner.scan()
        assert report.flagged_pairs == 0
        for sub in await submission_store.get_all():
            assert not sub.result.integrity_analysis.plagiarism_detected
            assert WARNING_MARKER not in sub.result.summary

    async def test_short_transcriptions_exempt(self, scanner, submission_store, make_graded):
        await _put_all(submission_store, make_graded("Ann", "x = 2"), make_graded("Bob", "x = 2"))
        report = await scanner.scan()
        assert report.flagged_pairs == 0

    async def test_stale_flags_cleared(self, scanner, submission_store, make_graded):
        ann = make_graded("Ann", COPIED)
        bob = make_graded("Bob", COPIED)
        await _put_all(submission_store, ann, bob)
        await scanner.scan()

        changed = await submission_store.get(bob.id)
        changed.result.student_handwriting_transcription = "a fresh attempt with new reasoning throughout"
        await submission_store.put(changed)
        report = await scanner.scan()

        assert report.flagged_pairs == 0
        assert set(report.updated_submission_ids) == {ann.id, bob.id}
        for sub in await submission_store.get_all():
            analysis = sub.result.integrity_analysis
            assert not analysis.plagiarism_detected
            assert analysis.matched_student_name is None
            assert analysis.is_suspicious is False
            assert analysis.suspicion_level is SuspicionLevel.NONE
            assert analysis.escalated_from is None

    async def test_missing_analysis_is_created(self, scanner, submission_store, make_graded):
        ann = make_graded("Ann", COPIED, integrityAnalysis=None)
        await _put_all(submission_store, ann, make_graded("Bob", COPIED))
        await scanner.scan()
        stored = await submission_store.get(ann.id)
        assert stored.result.integrity_analysis.plagiarism_detected

    async def test_created_analysis_removed_when_copy_disappears(
        self, scanner, submission_store, make_graded,
    ):
        ann = make_graded("Ann", COPIED, integrityAnalysis=None)
        bob = make_graded("Bob", COPIED)
        await _put_all(submission_store, ann, bob)
        await scanner.scan()

        changed = await submission_store.get(bob.id)
        changed.result.student_handwriting_transcription = "a fresh attempt with new reasoning throughout"
        await submission_store.put(changed)
        await scanner.scan()

        assert (await submission_store.get(ann.id)).result.integrity_analysis is None

    async def test_ungraded_submissions_skipped(
        self, scanner, submission_store, make_graded, page,
    ):
        errored = Submission(student_name="Cid", student_id="S9", pages=[page])
        errored.mark_errored("timeout")
        await _put_all(submission_store, make_graded("Ann", COPIED), errored)

        report = await scanner.scan()

        assert report.scanned == 2
        assert report.flagged_pairs == 0
        assert (await submission_store.get(errored.id)).error_reason == "timeout"

    async def test_three_way_copy(self, scanner, submission_store, make_graded):
        await _put_all(
            submission_store,
            make_graded("Ann", COPIED),
            make_graded("Bob", COPIED),
            make_graded("Cid", COPIED),
        )
        report = await scanner.scan()
        assert report.flagged_pairs == 3
        for sub in await submission_store.get_all():
            assert sub.result.summary.count(WARNING_MARKER) == 1

    async def test_three_way_copy_names_last_counterpart(
        self, scanner, submission_store, make_graded,
    ):
        ann = make_graded("Ann", COPIED)
        bob = make_graded("Bob", COPIED)
        cid = make_graded("Cid", COPIED)
        await _put_all(submission_store, ann, bob, cid)
        await scanner.scan()

        matched = {
            sub.student_name: sub.result.integrity_analysis.matched_student_name
            for sub in await submission_store.get_all()
        }
        assert matched == {"Ann": "Cid", "Bob": "Cid", "Cid": "Bob"}

    async def test_empty_store(self, scanner):
        report = await scanner.scan()
        assert report.scanned == 0
        assert report.flagged_pairs == 0
