"""
Utility functions for the review engine
"""
import math
import re
import unicodedata
from pathlib import Path
from typing import List, Optional, Set, Union

from ..core.constants import FileSignatures, FileType

_WHITESPACE_RE = re.compile(r"\s+")
_TOKEN_RE = re.compile(r"[a-z0-9]+")

VALID_IMAGE_EXTENSIONS = {"jpg", "jpeg", "png", "gif", "bmp", "webp", "tif", "tiff"}


def strip_diacritics(text: str) -> str:
    """Remove combining marks (á -> a, ñ -> n)"""
    decomposed = unicodedata.normalize("NFD", text)
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch))


def normalize_text(text: Optional[str]) -> str:
    """Lowercase, strip diacritics and collapse whitespace"""
    if not text:
        return ""
    text = strip_diacritics(text).lower()
    return _WHITESPACE_RE.sub(" ", text).strip()


def tokenize(text: Optional[str], min_length: int = 1) -> List[str]:
    """Split into normalized alphanumeric tokens, keeping order"""
    return [t for t in _TOKEN_RE.findall(normalize_text(text)) if len(t) >= min_length]


def token_set(text: Optional[str], min_length: int = 1) -> Set[str]:
    return set(tokenize(text, min_length))


def jaccard(a: Set[str], b: Set[str]) -> float:
    """Intersection over union of two token sets"""
    if not a or not b:
        return 0.0
    return len(a & b) / len(a | b)


def get_file_extension(filename: str) -> str:
    """Get file extension without dot"""
    return Path(filename or "").suffix.lstrip(".")


def is_valid_image(filename: str) -> bool:
    """Check if file is a valid image"""
    return get_file_extension(filename).lower() in VALID_IMAGE_EXTENSIONS


def is_valid_pdf(filename: str) -> bool:
    """Check if file is a valid PDF"""
    return get_file_extension(filename).lower() == "pdf"


def sniff_file_type(content: bytes) -> Optional[FileType]:
    """Guess the upload type from its leading bytes"""
    head = content[:16]
    if head.startswith(FileSignatures.PDF):
        return FileType.PDF
    if head.startswith(FileSignatures.IMAGE):
        return FileType.IMAGE
    if head[:4] == b"RIFF" and head[8:12] == b"WEBP":
        return FileType.IMAGE
    return None


def detect_file_type(
    filename: str,
    content: bytes,
    content_type: Optional[str] = None
) -> Optional[FileType]:
    """Resolve upload type by MIME type, then extension, then magic bytes"""
    if content_type:
        mime = content_type.lower()
        if mime.startswith("image/"):
            return FileType.IMAGE
        if mime in ("application/pdf", "application/x-pdf"):
            return FileType.PDF
    if is_valid_pdf(filename):
        return FileType.PDF
    if is_valid_image(filename):
        return FileType.IMAGE
    return sniff_file_type(content or b"")


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def scale_score(correct: Union[int, float], total: int, scale: float) -> int:
    """Scale a raw score to points or percent, rounding half up"""
    if total <= 0:
        return 0
    return round_half_up((correct / total) * scale)


def clamp_score(score: float, total: float) -> float:
    """Clamp a score into [0, total]"""
    return max(0.0, min(float(score), float(total)))
