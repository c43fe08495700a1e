"""
Grader Module
Reviews uploaded answer sheets: text extraction, document matching,
identity resolution and auto-grading

Usage:
    from sheet_review.grader import UploadedFile, create_processor

    # Create processor on the default JSON store
    processor = create_processor()

    # Review one upload
    outcome = processor.run_review(UploadedFile.from_path("scan.pdf"), test)

    # Fix a misidentified upload
    processor.manual_assign(test, outcome.record.uploaded_at, "student-7")

    # Override a grade
    processor.edit_score(test, "student-7", 18)
"""

from .image_processing import (
    denoise_enhance_sharpen,
    decode_image,
    prepare_for_ocr,
)

from .text_extraction import (
    ExtractionResult,
    OcrBackend,
    OcrResult,
    TesseractBackend,
    TextExtractor,
    UploadedFile,
)

from .document_matching import (
    DocumentMatcher,
    MatchResult,
)

from .identity import (
    IdentityResolution,
    IdentityResolver,
    RosterCandidate,
    RosterMatch,
)

from .grading_engine import (
    GradeReport,
    GradingEngine,
    QuestionResult,
)

from .processor import (
    ReviewOutcome,
    ReviewProcessor,
    create_processor,
)

__all__ = [
    # Image processing
    "denoise_enhance_sharpen",
    "decode_image",
    "prepare_for_ocr",
    # Text extraction
    "ExtractionResult",
    "OcrBackend",
    "OcrResult",
    "TesseractBackend",
    "TextExtractor",
    "UploadedFile",
    # Document matching
    "DocumentMatcher",
    "MatchResult",
    # Identity
    "IdentityResolution",
    "IdentityResolver",
    "RosterCandidate",
    "RosterMatch",
    # Grading
    "GradeReport",
    "GradingEngine",
    "QuestionResult",
    # Processor
    "ReviewOutcome",
    "ReviewProcessor",
    "create_processor",
]
