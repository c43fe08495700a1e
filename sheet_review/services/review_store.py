"""
Review Store
Per-test upload history and the single write path into the grade ledger
"""
import logging
import threading
import time
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from pydantic import ValidationError

from ..core.constants import StorageKeys
from ..core.exceptions import ReviewNotFound
from ..schemas import GradeEntry, ReviewRecord, RosterStudent
from ..utils.helpers import normalize_text
from .collaborators import DocumentGradeLedger, GradeLedger
from .document_store import DocumentStore

logger = logging.getLogger(__name__)


def now_ms() -> int:
    return int(time.time() * 1000)


class ReviewStore:
    """
    Append-only review history plus grade upserts.

    Every write is one read-modify-write under a lock, so a retried
    correction never duplicates a record or a ledger entry.
    """

    def __init__(
        self,
        store: DocumentStore,
        ledger: Optional[GradeLedger] = None,
        clock: Optional[Callable[[], int]] = None
    ):
        self.store = store
        self.ledger = ledger or DocumentGradeLedger(store)
        self.clock = clock or now_ms
        self._lock = threading.RLock()

    def now(self) -> int:
        return self.clock()

    def transaction(self) -> threading.RLock:
        """Hold across several writes that must land together"""
        return self._lock

    # ===== History =====

    def _raw_history(self, test_id: str) -> List[Dict[str, Any]]:
        value = self.store.get(StorageKeys.reviews(test_id))
        if not isinstance(value, list):
            return []
        return [r for r in value if isinstance(r, dict)]

    @staticmethod
    def _parse(test_id: str, raw: Dict[str, Any]) -> ReviewRecord:
        return ReviewRecord.model_validate({"testId": test_id, **raw})

    def history(self, test_id: str) -> List[ReviewRecord]:
        """All review records of a test, oldest first"""
        records = []
        for raw in self._raw_history(test_id):
            try:
                records.append(self._parse(test_id, raw))
            except ValidationError as e:
                logger.warning(f"Skipping malformed review record for test {test_id}: {e}")
        return records

    def append(self, record: ReviewRecord) -> ReviewRecord:
        """
        Add a record to its test's history; never overwrites.

        A colliding ``uploaded_at`` is bumped by 1 ms so records stay
        addressable by timestamp.
        """
        with self._lock:
            raw = self._raw_history(record.test_id)
            taken = {r.get("uploadedAt") for r in raw}
            uploaded_at = record.uploaded_at
            while uploaded_at in taken:
                uploaded_at += 1
            if uploaded_at != record.uploaded_at:
                record = record.model_copy(update={"uploaded_at": uploaded_at})

            raw.append(record.to_document())
            self.store.set(StorageKeys.reviews(record.test_id), raw)

        logger.info(
            f"Appended review for test {record.test_id} at {record.uploaded_at} "
            f"(history size {len(raw)})"
        )
        return record

    def update_record(self, test_id: str, uploaded_at: int, **changes) -> ReviewRecord:
        """
        Rewrite fields of the record uploaded at ``uploaded_at`` in place.

        Raises:
            ReviewNotFound: No record has that timestamp
        """
        with self._lock:
            raw = self._raw_history(test_id)
            idx = next((i for i, r in enumerate(raw) if r.get("uploadedAt") == uploaded_at), None)
            if idx is None:
                raise ReviewNotFound(test_id, uploaded_at)

            current = self._parse(test_id, raw[idx])
            updated = ReviewRecord.model_validate({**current.model_dump(), **changes})
            raw[idx] = {**raw[idx], **updated.to_document()}
            self.store.set(StorageKeys.reviews(test_id), raw)

        logger.info(f"Updated review {test_id} @ {uploaded_at}: {sorted(changes)}")
        return updated

    def update_score_by_upload_timestamp(
        self,
        test_id: str,
        uploaded_at: int,
        new_score: float,
        total_questions: Optional[int] = None
    ) -> ReviewRecord:
        """Correct the score of one upload without adding a record"""
        changes: Dict[str, Any] = {"score": new_score}
        if total_questions is not None:
            changes["total_questions"] = total_questions
        return self.update_record(test_id, uploaded_at, **changes)

    @staticmethod
    def latest_for_student(
        history: Sequence[ReviewRecord],
        student: RosterStudent
    ) -> Optional[ReviewRecord]:
        """
        Most recent record for a roster student.

        Matches on student id first, then on normalized name.
        """
        by_id = [r for r in history if r.student_id and r.student_id == student.id]
        if by_id:
            return max(by_id, key=lambda r: r.uploaded_at)

        name = normalize_text(student.label)
        if not name:
            return None
        by_name = [r for r in history if normalize_text(r.student_name) == name]
        if by_name:
            return max(by_name, key=lambda r: r.uploaded_at)
        return None

    def rows_for_roster(
        self,
        history: Sequence[ReviewRecord],
        roster: Sequence[RosterStudent]
    ) -> List[Tuple[RosterStudent, Optional[ReviewRecord]]]:
        """One row per roster student, with their latest record if any"""
        return [(s, self.latest_for_student(history, s)) for s in roster]

    # ===== Grade ledger =====

    def grades_for_test(self, test_id: str) -> List[GradeEntry]:
        return self.ledger.get(test_id)

    def grade_for_student(self, test_id: str, student_id: str) -> Optional[GradeEntry]:
        return next((g for g in self.ledger.get(test_id) if g.student_id == student_id), None)

    def upsert_grade(self, entry: GradeEntry) -> GradeEntry:
        """Overwrite the (test, student) entry or add it; never duplicates"""
        if entry.graded_at is None:
            entry = entry.model_copy(update={"graded_at": self.now()})

        with self._lock:
            entries = self.ledger.get(entry.test_id)
            idx = next((i for i, g in enumerate(entries) if g.student_id == entry.student_id), None)
            if idx is None:
                entries.append(entry)
            else:
                entries[idx] = entry
            self.ledger.put(entry.test_id, entries)

        logger.info(
            f"{'Inserted' if idx is None else 'Updated'} grade for "
            f"{entry.student_id} on test {entry.test_id}: {entry.score}"
        )
        return entry
