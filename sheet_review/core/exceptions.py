"""
Custom exceptions for the review engine
"""
from .constants import Messages


class ReviewEngineException(Exception):
    """Base exception for all review engine errors"""

    def __init__(self, detail: str, error_code: str = None):
        super().__init__(detail)
        self.detail = detail
        self.error_code = error_code


class OcrUnavailable(ReviewEngineException):
    """Recognition engine could not be initialized"""

    def __init__(self, reason: str = None):
        detail = Messages.OCR_UNAVAILABLE
        if reason:
            detail += f": {reason}"
        super().__init__(detail=detail, error_code="OCR_UNAVAILABLE")


class UnsupportedFormat(ReviewEngineException):
    """Upload is neither an image nor a PDF"""

    def __init__(self, filename: str, reason: str = None):
        detail = f"{Messages.UNSUPPORTED_FORMAT} '{filename}'"
        if reason:
            detail += f": {reason}"
        super().__init__(detail=detail, error_code="UNSUPPORTED_FORMAT")
        self.filename = filename


class ExtractionCancelled(ReviewEngineException):
    """Caller tore down the review before extraction finished"""

    def __init__(self, filename: str = None):
        detail = Messages.EXTRACTION_CANCELLED
        if filename:
            detail += f" '{filename}'"
        super().__init__(detail=detail, error_code="CANCELLED")


class ReviewNotFound(ReviewEngineException):
    """No review record at the given upload timestamp"""

    def __init__(self, test_id: str, uploaded_at: int):
        super().__init__(
            detail=f"{Messages.REVIEW_NOT_FOUND}: {test_id} @ {uploaded_at}",
            error_code="REVIEW_NOT_FOUND"
        )
        self.test_id = test_id
        self.uploaded_at = uploaded_at


class StudentNotFound(ReviewEngineException):
    """Manual pick does not belong to the test's roster"""

    def __init__(self, student_id: str, section_id: str = None):
        detail = f"{Messages.STUDENT_NOT_FOUND}: '{student_id}'"
        if section_id:
            detail += f" ({section_id})"
        super().__init__(detail=detail, error_code="STUDENT_NOT_FOUND")
        self.student_id = student_id
