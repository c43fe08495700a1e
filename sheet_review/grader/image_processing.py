"""
Image Processing Module
Prepares scanned pages and photos for OCR
"""
import cv2
import numpy as np
from typing import Optional
import logging

from ..config import settings

logger = logging.getLogger(__name__)


def to_grayscale(img: np.ndarray) -> np.ndarray:
    """Convert BGR/BGRA images to single channel"""
    if len(img.shape) == 2:
        return img
    if img.shape[2] == 4:
        return cv2.cvtColor(img, cv2.COLOR_BGRA2GRAY)
    return cv2.cvtColor(img, cv2.COLOR_BGR2GRAY)


def upscale_small(img: np.ndarray, min_height: int) -> np.ndarray:
    """Enlarge low-resolution phone photos so glyphs reach OCR size"""
    height = img.shape[0]
    if height == 0 or height >= min_height:
        return img
    factor = min_height / height
    return cv2.resize(img, None, fx=factor, fy=factor, interpolation=cv2.INTER_CUBIC)


def denoise_enhance_sharpen(
    img: np.ndarray,
    strength: Optional[float] = None,
    clip_limit: Optional[float] = None
) -> np.ndarray:
    """
    Apply denoising, CLAHE enhancement, and sharpening to an image.

    Args:
        img: Input image (grayscale or BGR)
        strength: Non-local means filter strength
        clip_limit: CLAHE contrast limit

    Returns:
        Processed grayscale image
    """
    strength = settings.DENOISE_STRENGTH if strength is None else strength
    clip_limit = settings.CLAHE_CLIP_LIMIT if clip_limit is None else clip_limit

    gray = to_grayscale(img)
    if strength > 0:
        gray = cv2.fastNlMeansDenoising(
            gray, None, h=strength, templateWindowSize=7, searchWindowSize=21
        )

    clahe = cv2.createCLAHE(clipLimit=clip_limit, tileGridSize=(8, 8))
    enhanced = clahe.apply(gray)

    # Unsharp mask
    blur = cv2.GaussianBlur(enhanced, (3, 3), 0)
    return np.clip(cv2.addWeighted(enhanced, 1.5, blur, -0.5, 0), 0, 255).astype(np.uint8)


def decode_image(content: bytes, grayscale: bool = False) -> Optional[np.ndarray]:
    """
    Decode an uploaded image from raw bytes.

    Returns:
        Image array or None if the bytes are not a readable image
    """
    if not content:
        return None
    flag = cv2.IMREAD_GRAYSCALE if grayscale else cv2.IMREAD_COLOR
    img = cv2.imdecode(np.frombuffer(content, dtype=np.uint8), flag)

    if img is None:
        logger.warning("Failed to decode uploaded image")

    return img


def pil_to_array(page_image) -> np.ndarray:
    """Convert a rendered PIL page (RGB) to an OpenCV BGR array"""
    rgb = np.asarray(page_image.convert("RGB"))
    return cv2.cvtColor(rgb, cv2.COLOR_RGB2BGR)


def prepare_for_ocr(img: np.ndarray, enhance: bool = True) -> np.ndarray:
    """Grayscale the image and, when enabled, clean it up before recognition"""
    if not enhance:
        return to_grayscale(img)
    return denoise_enhance_sharpen(upscale_small(img, settings.OCR_MIN_HEIGHT))
