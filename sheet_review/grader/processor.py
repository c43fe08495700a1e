"""
Review Processor Module
Main entry point for reviewing uploaded answer sheets
"""
import threading
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from ..core.constants import Messages
from ..core.exceptions import ReviewNotFound, StudentNotFound
from ..core.logger import review_logger as logger
from ..schemas import GradeEntry, ReviewRecord, RosterStudent, Test
from ..services.collaborators import DocumentRosterDirectory, RosterDirectory
from ..services.document_store import DocumentStore, JsonFileDocumentStore
from ..services.review_store import ReviewStore
from ..utils.helpers import clamp_score, scale_score
from .document_matching import DocumentMatcher, title_terms_for
from .grading_engine import GradeReport, GradingEngine
from .identity import IdentityResolver, RosterCandidate
from .text_extraction import OcrBackend, TextExtractor, UploadedFile, check_cancelled


@dataclass
class ReviewOutcome:
    """What the reviewer sees after an upload or a correction"""
    extracted_text: str
    coverage: float
    same_document: bool
    student_found: bool
    student_name: str = ""
    student_id: Optional[str] = None
    score: Optional[float] = None
    points: Optional[int] = None
    percent: Optional[int] = None
    answer_key: bool = False
    degraded: bool = False
    record: Optional[ReviewRecord] = None
    grade: Optional[GradeEntry] = None
    report: Optional[GradeReport] = None
    candidates: List[RosterCandidate] = field(default_factory=list)
    history: List[ReviewRecord] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary"""
        return {
            "extractedText": self.extracted_text,
            "coverage": self.coverage,
            "sameDocument": self.same_document,
            "studentFound": self.student_found,
            "studentName": self.student_name,
            "studentId": self.student_id,
            "score": self.score,
            "points": self.points,
            "percent": self.percent,
            "answerKey": self.answer_key,
            "degraded": self.degraded,
            "candidates": [
                {"studentId": c.student.id, "displayName": c.student.label, "similarity": c.similarity}
                for c in self.candidates
            ],
            "history": [r.to_document() for r in self.history],
        }


class ReviewProcessor:
    """
    Orchestrates one answer-sheet review.

    Pipeline:
    1. Text extraction
    2. Document match and identity resolution
    3. Auto-grading (only for matching, readable documents)
    4. History record, plus a grade when the student is known
    """

    def __init__(
        self,
        extractor: TextExtractor,
        review_store: ReviewStore,
        directory: RosterDirectory,
        matcher: Optional[DocumentMatcher] = None,
        resolver: Optional[IdentityResolver] = None,
        grading_engine: Optional[GradingEngine] = None
    ):
        self.extractor = extractor
        self.review_store = review_store
        self.directory = directory
        self.matcher = matcher or DocumentMatcher()
        self.resolver = resolver or IdentityResolver()
        self.grading_engine = grading_engine or GradingEngine()

    def _roster(self, test: Test) -> List[RosterStudent]:
        if not test.section_id:
            return []
        return self.directory.students_in_section(test.section_id)

    @staticmethod
    def _grade_entry(test: Test, student: RosterStudent, points: float) -> GradeEntry:
        return GradeEntry(
            test_id=test.id,
            student_id=student.id,
            student_name=student.label,
            score=points,
            course_id=test.course_id,
            section_id=test.section_id,
            subject_id=test.subject_id,
            title=test.title,
        )

    def run_review(
        self,
        file: UploadedFile,
        test: Test,
        cancel_event: Optional[threading.Event] = None
    ) -> ReviewOutcome:
        """
        Review one uploaded exam against a test.

        Extraction errors propagate before anything is written. Mismatches
        and unknown students are recorded and left for manual correction.

        Args:
            file: Uploaded scan or photo
            test: Test the upload claims to answer
            cancel_event: Set by the caller to abandon the review

        Returns:
            ReviewOutcome including the updated history
        """
        logger.info(f"Reviewing {file.filename} against test {test.id}")

        extraction = self.extractor.extract(file, cancel_event)
        match = self.matcher.verify_test(
            extraction.text, test, filename=file.filename, degraded=extraction.degraded
        )
        identity = self.resolver.resolve(
            extraction.text, file.filename, self._roster(test), exclude_terms=title_terms_for(test)
        )

        report = None
        if not match.is_match:
            logger.info(f"{Messages.DOCUMENT_MISMATCH}: {file.filename} (coverage {match.coverage:.2f})")
        elif extraction.degraded:
            # No answers were read; the grade is left for manual correction
            logger.warning(f"{Messages.NOT_GRADED_DEGRADED}: {file.filename}")
        else:
            report = self.grading_engine.evaluate(
                extraction.text, test.questions, test.resolved_total_points
            )

        check_cancelled(cancel_event, file.filename)

        record = self.review_store.append(ReviewRecord(
            test_id=test.id,
            uploaded_at=self.review_store.now(),
            student_name=identity.student_name or Messages.STUDENT_NOT_DETECTED,
            student_id=identity.student_id,
            course_id=test.course_id,
            section_id=test.section_id,
            subject_id=test.subject_id,
            subject_name=test.subject_name,
            topic=test.topic,
            score=report.score if report else None,
            total_questions=test.question_count,
            total_points=test.resolved_total_points,
            same_document=match.is_match,
            coverage=match.coverage,
            student_found=identity.found,
            file_name=file.filename,
            answer_key=identity.answer_key,
            degraded=extraction.degraded,
        ))

        grade = None
        if report is not None and identity.found:
            grade = self.review_store.upsert_grade(
                self._grade_entry(test, identity.match.student, report.points)
            )
        elif identity.answer_key:
            logger.info(f"{Messages.ANSWER_KEY_DETECTED}: {file.filename}")

        return ReviewOutcome(
            extracted_text=extraction.text,
            coverage=match.coverage,
            same_document=match.is_match,
            student_found=identity.found,
            student_name=record.student_name,
            student_id=identity.student_id,
            score=report.score if report else None,
            points=report.points if report else None,
            percent=report.percent if report else None,
            answer_key=identity.answer_key,
            degraded=extraction.degraded,
            record=record,
            grade=grade,
            report=report,
            candidates=identity.match.candidates,
            history=self.review_store.history(test.id),
        )

    def manual_assign(
        self,
        test: Test,
        review_timestamp: int,
        student_id: str,
        score: Optional[float] = None
    ) -> ReviewOutcome:
        """
        Assign an upload to a roster student chosen by the operator.

        The pick is authoritative. ``score`` is in correct-question units and
        defaults to the auto-graded score of that upload; it is clamped to
        the question count.

        Raises:
            StudentNotFound: student_id is not in the test's section
            ReviewNotFound: no upload at review_timestamp
        """
        student = next((s for s in self._roster(test) if s.id == student_id), None)
        if student is None:
            raise StudentNotFound(student_id, test.section_id)

        with self.review_store.transaction():
            current = next(
                (r for r in self.review_store.history(test.id) if r.uploaded_at == review_timestamp),
                None
            )
            if current is None:
                raise ReviewNotFound(test.id, review_timestamp)

            raw_score = current.score if score is None else score
            changes: Dict[str, Any] = {
                "student_id": student.id,
                "student_name": student.label,
                "student_found": True,
                "manually_assigned": True,
                "total_questions": test.question_count,
                "total_points": test.resolved_total_points,
            }
            if raw_score is not None:
                changes["score"] = self._clamp(raw_score, test.question_count)

            record = self.review_store.update_record(test.id, review_timestamp, **changes)

            grade = None
            if record.score is not None:
                points = scale_score(record.score, test.question_count, test.resolved_total_points)
                grade = self.review_store.upsert_grade(self._grade_entry(test, student, points))

        logger.info(f"Manually assigned review {review_timestamp} of test {test.id} to {student.label}")
        return ReviewOutcome(
            extracted_text="",
            coverage=record.coverage,
            same_document=record.same_document,
            student_found=True,
            student_name=student.label,
            student_id=student.id,
            score=record.score,
            points=grade.score if grade else None,
            percent=scale_score(record.score, test.question_count, 100) if record.score is not None else None,
            answer_key=record.answer_key,
            degraded=record.degraded,
            record=record,
            grade=grade,
            history=self.review_store.history(test.id),
        )

    def edit_score(self, test: Test, student_id: str, new_score: float) -> GradeEntry:
        """
        Set a student's grade by hand.

        ``new_score`` is in points, clamped to [0, total points]. The
        student's latest review record is corrected to match.
        """
        total = test.resolved_total_points
        score = self._clamp(new_score, total)

        student = next((s for s in self._roster(test) if s.id == student_id), None)
        existing = self.review_store.grade_for_student(test.id, student_id)
        if student is None and existing is not None:
            student = RosterStudent(id=student_id, display_name=existing.student_name)
        if student is None:
            raise StudentNotFound(student_id, test.section_id)

        with self.review_store.transaction():
            grade = self.review_store.upsert_grade(self._grade_entry(test, student, score))

            latest = self.review_store.latest_for_student(self.review_store.history(test.id), student)
            if latest is not None:
                equivalent = round(score / total * test.question_count, 2) if total else 0.0
                self.review_store.update_score_by_upload_timestamp(
                    test.id, latest.uploaded_at, equivalent, test.question_count
                )

        logger.info(f"Edited score of {student.label} on test {test.id}: {score}")
        return grade

    @staticmethod
    def _clamp(score: float, total: float) -> float:
        clamped = clamp_score(score, total)
        if clamped != score:
            logger.warning(f"Score {score} out of range [0, {total}], clamped to {clamped}")
        return clamped


def create_processor(
    store: Optional[DocumentStore] = None,
    directory: Optional[RosterDirectory] = None,
    backend: Optional[OcrBackend] = None,
    **extractor_options
) -> ReviewProcessor:
    """
    Factory function to create a ReviewProcessor on a document store.

    Args:
        store: Document store (defaults to the JSON file store)
        directory: Roster directory (defaults to one reading the same store)
        backend: OCR backend (defaults to Tesseract)
        **extractor_options: Additional TextExtractor options

    Returns:
        Configured ReviewProcessor instance
    """
    store = store if store is not None else JsonFileDocumentStore()
    return ReviewProcessor(
        extractor=TextExtractor(backend=backend, **extractor_options),
        review_store=ReviewStore(store),
        directory=directory or DocumentRosterDirectory(store),
    )
