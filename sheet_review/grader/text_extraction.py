"""
Text Extraction Module
Turns an uploaded image or PDF into plain text

Strategy:
    1. Images go straight to OCR.
    2. PDFs first try the embedded text layer of the first pages.
    3. Scanned PDFs are rendered page by page and OCR'd in a small worker pool.
    4. When nothing usable comes out, a degraded sentinel is returned.
"""
import io
import threading
from concurrent.futures import ALL_COMPLETED, ThreadPoolExecutor, wait
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Protocol, Union

import numpy as np
import pdfplumber
import pytesseract

from ..config import settings
from ..core.constants import DEGRADED_TEXT, ExtractionSource, FileType
from ..core.exceptions import ExtractionCancelled, OcrUnavailable, UnsupportedFormat
from ..core.logger import extraction_logger as logger
from ..utils.helpers import detect_file_type, normalize_text
from .image_processing import decode_image, pil_to_array, prepare_for_ocr

# Poll interval while waiting on page OCR, so cancellation is noticed promptly
_CANCEL_POLL_SECONDS = 0.1


def check_cancelled(cancel_event: Optional[threading.Event], filename: str) -> None:
    """Raise ExtractionCancelled once the caller has set the event"""
    if cancel_event is not None and cancel_event.is_set():
        logger.info(f"Review cancelled for {filename}")
        raise ExtractionCancelled(filename)


@dataclass
class UploadedFile:
    """An uploaded exam as received from the caller"""
    filename: str
    content: bytes
    content_type: Optional[str] = None

    @classmethod
    def from_path(
        cls,
        path: Union[str, Path],
        content_type: Optional[str] = None
    ) -> "UploadedFile":
        path = Path(path)
        return cls(filename=path.name, content=path.read_bytes(), content_type=content_type)


@dataclass
class OcrResult:
    text: str
    confidence: Optional[float] = None


@dataclass
class ExtractionResult:
    """Outcome of a single extraction run"""
    text: str
    confidence: Optional[float] = None
    degraded: bool = False
    source: ExtractionSource = ExtractionSource.NONE
    pages: int = 0


class OcrBackend(Protocol):
    def ensure_available(self) -> None:
        ...

    def recognize(self, image: np.ndarray, languages: str) -> OcrResult:
        ...


def ocr_result_from_data(data: Dict[str, List[Any]]) -> OcrResult:
    """
    Rebuild text lines from Tesseract's word-level output.

    Words sharing (block, paragraph, line) numbers are joined with spaces;
    confidence is the mean word confidence scaled to 0..1.
    """
    lines: Dict[tuple, List[str]] = {}
    confs: List[float] = []

    words = data.get("text", [])
    for i, word in enumerate(words):
        word = (word or "").strip()
        if not word:
            continue
        key = (
            data.get("block_num", [0] * len(words))[i],
            data.get("par_num", [0] * len(words))[i],
            data.get("line_num", [0] * len(words))[i],
        )
        lines.setdefault(key, []).append(word)

        try:
            conf = float(data.get("conf", [])[i])
        except (IndexError, TypeError, ValueError):
            continue
        if conf >= 0:
            confs.append(conf)

    text = "\n".join(" ".join(ws) for ws in lines.values())
    confidence = (sum(confs) / len(confs) / 100.0) if confs else None
    return OcrResult(text=text, confidence=confidence)


class TesseractBackend:
    """
    OCR through the Tesseract binary via pytesseract.

    Availability is checked lazily, once per instance.
    """

    def __init__(self, tesseract_cmd: Optional[str] = None):
        self.tesseract_cmd = tesseract_cmd or settings.TESSERACT_CMD
        self._available = False

    def ensure_available(self) -> None:
        if self._available:
            return
        if self.tesseract_cmd:
            pytesseract.pytesseract.tesseract_cmd = self.tesseract_cmd
        try:
            version = pytesseract.get_tesseract_version()
        except (pytesseract.TesseractNotFoundError, OSError) as e:
            logger.error(f"Tesseract not available: {e}")
            raise OcrUnavailable(str(e)) from e
        logger.info(f"Tesseract {version} available")
        self._available = True

    def recognize(self, image: np.ndarray, languages: str) -> OcrResult:
        try:
            data = pytesseract.image_to_data(
                image, lang=languages, output_type=pytesseract.Output.DICT
            )
        except pytesseract.TesseractError as e:
            logger.warning(f"Tesseract failed on page: {e}")
            return OcrResult(text="")
        return ocr_result_from_data(data)


class TextExtractor:
    """
    Layered text extraction for uploaded exams.

    Holds no per-call state, so one instance can serve concurrent uploads.
    """

    def __init__(
        self,
        backend: Optional[OcrBackend] = None,
        languages: Optional[str] = None,
        max_pages: Optional[int] = None,
        render_scale: Optional[float] = None,
        min_text_length: Optional[int] = None,
        workers: Optional[int] = None,
        preprocess: Optional[bool] = None
    ):
        self.backend = backend or TesseractBackend()
        self.languages = languages or settings.OCR_LANGUAGES
        self.max_pages = max_pages or settings.PDF_MAX_PAGES
        self.render_scale = render_scale or settings.RENDER_SCALE
        self.min_text_length = (
            settings.MIN_TEXT_LENGTH if min_text_length is None else min_text_length
        )
        self.workers = workers or settings.OCR_WORKERS
        self.preprocess = settings.OCR_PREPROCESS if preprocess is None else preprocess

    def is_usable(self, text: Optional[str]) -> bool:
        """Text is usable once its normalized length exceeds the threshold"""
        return len(normalize_text(text)) > self.min_text_length

    def extract(
        self,
        file: UploadedFile,
        cancel_event: Optional[threading.Event] = None
    ) -> ExtractionResult:
        """
        Extract text from an uploaded exam.

        Args:
            file: Uploaded image or PDF
            cancel_event: Set by the caller to abandon the extraction

        Returns:
            ExtractionResult; ``degraded`` is set when no usable text was found

        Raises:
            UnsupportedFormat: Not an image or PDF
            OcrUnavailable: OCR was needed but the engine cannot start
            ExtractionCancelled: cancel_event was set
        """
        file_type = detect_file_type(file.filename, file.content, file.content_type)
        if file_type is None:
            raise UnsupportedFormat(file.filename, file.content_type or "tipo desconocido")

        check_cancelled(cancel_event, file.filename)
        logger.info(f"Extracting text from {file.filename} ({file_type.value})")

        if file_type == FileType.IMAGE:
            result = self._extract_image(file)
        else:
            result = self._extract_pdf(file, cancel_event)

        check_cancelled(cancel_event, file.filename)
        logger.info(
            f"Extracted {len(result.text)} chars from {file.filename}: "
            f"source={result.source.value}, degraded={result.degraded}"
        )
        return result

    def _extract_image(self, file: UploadedFile) -> ExtractionResult:
        img = decode_image(file.content)
        if img is None:
            raise UnsupportedFormat(file.filename, "imagen ilegible")

        self.backend.ensure_available()
        ocr = self._recognize(img)

        if not self.is_usable(ocr.text):
            return self._degraded(ExtractionSource.IMAGE_OCR, pages=1)
        return ExtractionResult(
            text=ocr.text,
            confidence=ocr.confidence,
            source=ExtractionSource.IMAGE_OCR,
            pages=1
        )

    def _extract_pdf(
        self,
        file: UploadedFile,
        cancel_event: Optional[threading.Event]
    ) -> ExtractionResult:
        try:
            pdf = pdfplumber.open(io.BytesIO(file.content))
        except Exception as e:
            raise UnsupportedFormat(file.filename, f"PDF ilegible: {e}") from e

        with pdf:
            pages = pdf.pages[: self.max_pages]

            text = self._read_text_layer(pages)
            if self.is_usable(text):
                return ExtractionResult(
                    text=text,
                    confidence=1.0,
                    source=ExtractionSource.TEXT_LAYER,
                    pages=len(pages)
                )

            logger.info(f"No usable text layer in {file.filename}, rendering {len(pages)} pages for OCR")
            self.backend.ensure_available()

            resolution = int(round(72 * self.render_scale))
            images = []
            for page in pages:
                check_cancelled(cancel_event, file.filename)
                images.append(pil_to_array(page.to_image(resolution=resolution).original))

        results = self._ocr_pages(images, file.filename, cancel_event)
        texts = [r.text.strip() for r in results if r.text and r.text.strip()]
        combined = "\n".join(texts)

        if not self.is_usable(combined):
            return self._degraded(ExtractionSource.RENDER_OCR, pages=len(images))

        confs = [r.confidence for r in results if r.confidence is not None]
        return ExtractionResult(
            text=combined,
            confidence=(sum(confs) / len(confs)) if confs else None,
            source=ExtractionSource.RENDER_OCR,
            pages=len(images)
        )

    def _read_text_layer(self, pages) -> str:
        texts = []
        for page in pages:
            t = page.extract_text()
            if t and t.strip():
                texts.append(t.strip())
        return "\n".join(texts)

    def _ocr_pages(
        self,
        images: List[np.ndarray],
        filename: str,
        cancel_event: Optional[threading.Event]
    ) -> List[OcrResult]:
        """OCR each page in the pool; results keep page order"""
        if not images:
            return []

        executor = ThreadPoolExecutor(
            max_workers=min(self.workers, len(images)),
            thread_name_prefix="ocr-page"
        )
        try:
            futures = [executor.submit(self._recognize, img) for img in images]

            pending = set(futures)
            while pending:
                check_cancelled(cancel_event, filename)
                _, pending = wait(pending, timeout=_CANCEL_POLL_SECONDS, return_when=ALL_COMPLETED)

            return [f.result() for f in futures]
        finally:
            executor.shutdown(wait=False, cancel_futures=True)

    def _recognize(self, img: np.ndarray) -> OcrResult:
        prepared = prepare_for_ocr(img, enhance=self.preprocess)
        return self.backend.recognize(prepared, self.languages)

    def _degraded(self, source: ExtractionSource, pages: int) -> ExtractionResult:
        return ExtractionResult(
            text=DEGRADED_TEXT,
            confidence=None,
            degraded=True,
            source=source,
            pages=pages
        )
