"""
Unit tests for review history and grade ledger writes
"""
import json

import pytest

from sheet_review.core import ReviewNotFound, StorageKeys
from sheet_review.schemas import GradeEntry, ReviewRecord, RosterStudent
from sheet_review.services import (
    DocumentGradeLedger,
    DocumentRosterDirectory,
    InMemoryDocumentStore,
    JsonFileDocumentStore,
    ReviewStore,
)


class FixedClock:
    def __init__(self, start=1_700_000_000_000):
        self.value = start

    def __call__(self):
        return self.value


@pytest.fixture
def clock():
    return FixedClock()


@pytest.fixture
def review_store(memory_store, clock):
    return ReviewStore(memory_store, clock=clock)


def make_record(uploaded_at, name="Ana Torres", student_id=None, score=2.0):
    return ReviewRecord(
        test_id="t1",
        uploaded_at=uploaded_at,
        student_name=name,
        student_id=student_id,
        score=score,
        total_questions=4,
        same_document=True,
        coverage=0.8,
        student_found=student_id is not None,
    )


def make_grade(student_id="s-ana", score=7.0):
    return GradeEntry(test_id="t1", student_id=student_id, student_name="Ana Torres", score=score)


class TestHistory:
    """Test cases for the append-only history"""

    def test_append_grows_history_by_one(self, review_store):
        review_store.append(make_record(1000))
        review_store.append(make_record(2000))

        assert [r.uploaded_at for r in review_store.history("t1")] == [1000, 2000]

    def test_stored_with_portal_keys(self, review_store, memory_store):
        review_store.append(make_record(1000, student_id="s-ana"))

        raw = memory_store.get(StorageKeys.reviews("t1"))
        assert raw[0]["uploadedAt"] == 1000
        assert raw[0]["studentId"] == "s-ana"
        assert raw[0]["sameDocument"] is True

    def test_colliding_timestamp_is_bumped(self, review_store):
        review_store.append(make_record(1000))
        second = review_store.append(make_record(1000))

        assert second.uploaded_at == 1001
        assert len(review_store.history("t1")) == 2

    def test_update_keeps_history_size(self, review_store):
        review_store.append(make_record(1000))
        review_store.append(make_record(2000))

        updated = review_store.update_score_by_upload_timestamp("t1", 1000, 3.5, 4)

        history = review_store.history("t1")
        assert len(history) == 2
        assert updated.score == 3.5
        assert history[0].score == 3.5
        assert history[1].score == 2.0

    def test_update_missing_record(self, review_store):
        review_store.append(make_record(1000))

        with pytest.raises(ReviewNotFound):
            review_store.update_score_by_upload_timestamp("t1", 999, 1)

    def test_update_preserves_unknown_keys(self, review_store, memory_store):
        memory_store.set(StorageKeys.reviews("t1"), [
            {"uploadedAt": 1000, "studentName": "Ana", "score": 1, "reviewerNote": "borroso"}
        ])

        review_store.update_score_by_upload_timestamp("t1", 1000, 2)

        raw = memory_store.get(StorageKeys.reviews("t1"))
        assert raw[0]["reviewerNote"] == "borroso"
        assert raw[0]["score"] == 2

    def test_malformed_records_skipped(self, review_store, memory_store):
        memory_store.set(StorageKeys.reviews("t1"), [
            {"uploadedAt": "ayer"},
            "basura",
            {"uploadedAt": 1000, "studentName": "Ana"},
        ])

        history = review_store.history("t1")

        assert [r.uploaded_at for r in history] == [1000]

    def test_latest_for_student_prefers_id(self, review_store):
        student = RosterStudent(id="s-ana", display_name="Ana Torres")
        history = [
            make_record(1000, student_id="s-ana"),
            make_record(3000, name="Ana Torres"),
            make_record(2000, student_id="s-ana"),
        ]

        assert review_store.latest_for_student(history, student).uploaded_at == 2000

    def test_latest_for_student_by_name(self, review_store):
        student = RosterStudent(id="s-ana", display_name="Ana Torres")
        history = [make_record(1000, name="ANA  TORRES"), make_record(500, name="ana torres")]

        assert review_store.latest_for_student(history, student).uploaded_at == 1000

    def test_rows_for_roster(self, review_store, roster):
        history = [make_record(1000, student_id="s-ana")]

        rows = review_store.rows_for_roster(history, roster)

        assert len(rows) == len(roster)
        assert rows[0][1].uploaded_at == 1000
        assert rows[1][1] is None


class TestGradeLedger:
    """Test cases for grade upserts"""

    def test_upsert_is_idempotent(self, review_store):
        review_store.upsert_grade(make_grade(score=7))
        review_store.upsert_grade(make_grade(score=7))

        grades = review_store.grades_for_test("t1")
        assert len(grades) == 1
        assert grades[0].id == "t1-s-ana"

    def test_upsert_overwrites_score(self, review_store):
        review_store.upsert_grade(make_grade(score=7))
        review_store.upsert_grade(make_grade(score=4))

        assert review_store.grade_for_student("t1", "s-ana").score == 4

    def test_graded_at_stamped(self, review_store, clock):
        entry = review_store.upsert_grade(make_grade())

        assert entry.graded_at == clock.value

    def test_other_tests_untouched(self, review_store, memory_store):
        memory_store.set(StorageKeys.TEST_GRADES, [
            {"id": "t2-s-ana", "testId": "t2", "studentId": "s-ana", "score": 5, "legacy": True}
        ])

        review_store.upsert_grade(make_grade())

        raw = memory_store.get(StorageKeys.TEST_GRADES)
        assert {g["testId"] for g in raw} == {"t1", "t2"}
        assert next(g for g in raw if g["testId"] == "t2")["legacy"] is True

    def test_ledger_reads_camel_case(self, memory_store):
        memory_store.set(StorageKeys.TEST_GRADES, [
            {"testId": "t1", "studentId": "s-luis", "studentName": "Luis", "score": 3},
            {"testId": "t1", "score": 3},
        ])

        grades = DocumentGradeLedger(memory_store).get("t1")

        assert [g.student_id for g in grades] == ["s-luis"]
        assert grades[0].id == "t1-s-luis"


class TestRosterDirectory:
    """Test cases for the portal roster adapter"""

    def test_students_in_section(self, memory_store):
        memory_store.set(StorageKeys.USERS, [
            {"id": "u1", "username": "atorres", "displayName": "Ana Torres", "role": "student"},
            {"id": "u2", "username": "lperez", "displayName": "Luis Perez", "role": "student"},
            {"id": "u3", "username": "profe", "displayName": "Profe", "role": "teacher"},
            {"id": "u4", "username": "mdiaz", "name": "Marta Diaz", "role": "student", "sectionId": "sec-1"},
        ])
        memory_store.set(StorageKeys.STUDENT_ASSIGNMENTS, [
            {"studentId": "u1", "sectionId": "sec-1", "isActive": True},
            {"studentId": "u2", "sectionId": "sec-1", "isActive": False},
            {"studentId": "u3", "sectionId": "sec-1"},
        ])

        students = DocumentRosterDirectory(memory_store).students_in_section("sec-1")

        assert [s.id for s in students] == ["u1", "u4"]
        assert students[1].label == "Marta Diaz"


class TestJsonFileDocumentStore:
    """Test cases for the file-backed store"""

    def test_persists_across_instances(self, tmp_path):
        path = tmp_path / "store.json"
        JsonFileDocumentStore(path).set("k", [{"a": 1}])

        assert JsonFileDocumentStore(path).get("k") == [{"a": 1}]
        assert json.loads(path.read_text(encoding="utf-8")) == {"k": [{"a": 1}]}

    def test_corrupt_file_starts_empty(self, tmp_path):
        path = tmp_path / "store.json"
        path.write_text("{not json", encoding="utf-8")

        store = JsonFileDocumentStore(path)

        assert store.get("k") is None

    def test_failed_write_keeps_previous_value(self, tmp_path, monkeypatch):
        """A write that never reached disk is not visible to later reads"""
        store = JsonFileDocumentStore(tmp_path / "store.json")
        store.set("k", 1)

        def disk_full(*args, **kwargs):
            raise OSError("No space left on device")

        monkeypatch.setattr("sheet_review.services.document_store.os.replace", disk_full)

        with pytest.raises(OSError):
            store.set("k", 2)

        assert store.get("k") == 1

    def test_values_are_copies(self):
        store = InMemoryDocumentStore()
        value = [{"a": 1}]
        store.set("k", value)
        value.append({"b": 2})

        assert store.get("k") == [{"a": 1}]
