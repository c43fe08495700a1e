# Core package
from .constants import (
    DEGRADED_TEXT,
    MARK_GLYPHS,
    ExtractionSource,
    FileType,
    Messages,
    QuestionOutcome,
    StorageKeys,
)
from .exceptions import (
    ReviewEngineException,
    OcrUnavailable,
    UnsupportedFormat,
    ExtractionCancelled,
    ReviewNotFound,
    StudentNotFound,
)
from .logger import setup_logger, package_logger, extraction_logger, review_logger

__all__ = [
    # Constants
    "DEGRADED_TEXT",
    "MARK_GLYPHS",
    "ExtractionSource",
    "FileType",
    "Messages",
    "QuestionOutcome",
    "StorageKeys",
    # Exceptions
    "ReviewEngineException",
    "OcrUnavailable",
    "UnsupportedFormat",
    "ExtractionCancelled",
    "ReviewNotFound",
    "StudentNotFound",
    # Logging
    "setup_logger",
    "package_logger",
    "extraction_logger",
    "review_logger",
]
