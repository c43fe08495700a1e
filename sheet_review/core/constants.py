"""
Engine constants
"""
from enum import Enum


class FileType(str, Enum):
    """Supported upload types"""
    PDF = "pdf"
    IMAGE = "image"


class ExtractionSource(str, Enum):
    """Which extraction path produced the text"""
    IMAGE_OCR = "image-ocr"
    TEXT_LAYER = "text-layer"
    RENDER_OCR = "render-ocr"
    NONE = "none"


class QuestionOutcome(str, Enum):
    """Per-question grading outcome"""
    CORRECT = "correct"
    WRONG = "wrong"
    AMBIGUOUS = "ambiguous"
    MANUAL = "manual"


# Returned when no extraction path yields usable text
DEGRADED_TEXT = "[sin texto reconocible]"


# Persistent document store keys
class StorageKeys:
    """Keys shared with the rest of the school portal"""
    REVIEWS_PREFIX = "smart-student-test-reviews_"
    TEST_GRADES = "smart-student-test-grades"
    USERS = "smart-student-users"
    STUDENT_ASSIGNMENTS = "smart-student-student-assignments"

    @classmethod
    def reviews(cls, test_id: str) -> str:
        return f"{cls.REVIEWS_PREFIX}{test_id}"


# Glyphs accepted as a selected mark
MARK_GLYPHS = "xX✓✔●◉•"

STUDENT_ROLES = ("student", "estudiante")


# User-facing messages
class Messages:
    """Review engine messages"""

    OCR_UNAVAILABLE = "OCR no disponible"
    UNSUPPORTED_FORMAT = "Formato de archivo no soportado"
    EXTRACTION_CANCELLED = "Revisión cancelada"
    REVIEW_NOT_FOUND = "Revisión no encontrada"
    STUDENT_NOT_FOUND = "Estudiante no encontrado en la sección"
    STUDENT_NOT_DETECTED = "No detectado"
    DOCUMENT_MISMATCH = "El documento no corresponde a la prueba"
    ANSWER_KEY_DETECTED = "Archivo de clave de respuestas: no se asigna a un estudiante"
    NOT_GRADED_DEGRADED = "Texto ilegible: la prueba queda sin nota hasta corregirla manualmente"


# File signatures used when MIME type and extension are missing
class FileSignatures:
    """Magic byte prefixes"""
    PDF = (b"%PDF",)
    IMAGE = (
        b"\x89PNG\r\n\x1a\n",
        b"\xff\xd8\xff",
        b"GIF87a",
        b"GIF89a",
        b"BM",
        b"II*\x00",
        b"MM\x00*",
    )
