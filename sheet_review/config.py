"""
Configuration settings for the answer-sheet review engine
"""
from pydantic_settings import BaseSettings
from pathlib import Path
from typing import List


class Settings(BaseSettings):
    """Engine settings using pydantic-settings"""

    # Project paths
    PROJECT_ROOT: Path = Path(__file__).parent.parent
    DATA_DIR: Path = PROJECT_ROOT / "data"
    LOGS_DIR: Path = PROJECT_ROOT / "logs"
    STORE_FILE: Path = DATA_DIR / "document_store.json"

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_TO_FILE: bool = True

    # OCR settings
    OCR_LANGUAGES: str = "spa+eng"
    OCR_WORKERS: int = 2
    OCR_PREPROCESS: bool = True
    OCR_MIN_HEIGHT: int = 1000
    DENOISE_STRENGTH: float = 10.0
    CLAHE_CLIP_LIMIT: float = 2.0
    TESSERACT_CMD: str = ""

    # Extraction settings
    PDF_MAX_PAGES: int = 3
    RENDER_SCALE: float = 1.8
    MIN_TEXT_LENGTH: int = 40

    # Document matching
    MATCH_THRESHOLD: float = 0.1
    MATCH_MIN_TOKEN_LENGTH: int = 4
    FILENAME_FALLBACK_COVERAGE: float = 0.25

    # Identity resolution
    ROSTER_TOP_K: int = 8
    ROSTER_CONFIDENT_SIMILARITY: float = 0.75
    NAME_SCAN_LINES: int = 20
    NAME_LABEL_WINDOW: int = 3
    ANSWER_KEY_MARKERS: List[str] = [
        "clave",
        "key",
        "answerkey",
        "pauta",
        "solucionario",
    ]
    NAME_HEADER_FIELDS: List[str] = [
        "curso", "fecha", "rut", "run", "asignatura", "materia", "seccion",
        "pagina", "puntaje", "nota", "course", "date", "subject", "section",
        "page", "score", "grade", "id",
    ]
    NAME_DENYLIST: List[str] = [
        # Spanish sheet headers
        "nombre", "estudiante", "alumno", "alumna", "curso", "fecha",
        "asignatura", "materia", "seccion", "pagina", "rut", "clave",
        "prueba", "evaluacion", "puntaje", "nota", "profesor", "profesora",
        "colegio", "liceo", "escuela", "instrucciones", "respuestas",
        "basico", "medio", "matematica", "lenguaje", "historia", "ciencias",
        "naturales", "ingles", "quimica", "fisica", "biologia",
        # English sheet headers
        "name", "student", "course", "date", "subject", "section", "page",
        "id", "test", "exam", "quiz", "score", "grade", "teacher", "school",
        "answer", "answers", "key", "instructions", "class",
        # Scanner/file noise
        "scan", "scanned", "img", "image", "foto", "photo", "pdf", "copia",
        "copy", "final", "hoja",
    ]

    # Grading
    MARK_WINDOW: int = 2

    class Config:
        env_file = ".env"
        extra = "allow"


settings = Settings()

# Ensure directories exist
settings.DATA_DIR.mkdir(parents=True, exist_ok=True)
settings.LOGS_DIR.mkdir(parents=True, exist_ok=True)
