# Sheet review package
"""
Answer Sheet Review - OCR review and auto-grading engine
"""

from .config import settings

__all__ = [
    "settings",
]
