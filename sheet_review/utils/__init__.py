# Utils package
from .helpers import (
    strip_diacritics,
    normalize_text,
    tokenize,
    token_set,
    jaccard,
    get_file_extension,
    is_valid_image,
    is_valid_pdf,
    sniff_file_type,
    detect_file_type,
    round_half_up,
    scale_score,
    clamp_score,
)

__all__ = [
    "strip_diacritics",
    "normalize_text",
    "tokenize",
    "token_set",
    "jaccard",
    "get_file_extension",
    "is_valid_image",
    "is_valid_pdf",
    "sniff_file_type",
    "detect_file_type",
    "round_half_up",
    "scale_score",
    "clamp_score",
]
