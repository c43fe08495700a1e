"""
Unit tests for OCR image preparation
"""
import numpy as np

from conftest import image_with_level
from sheet_review.grader.image_processing import (
    decode_image,
    denoise_enhance_sharpen,
    prepare_for_ocr,
    upscale_small,
)


class TestImageProcessing:
    """Test cases for image preparation"""

    def test_decode_png(self):
        img = decode_image(image_with_level(120))

        assert img.shape == (16, 16, 3)
        assert int(img[0, 0, 0]) == 120

    def test_decode_garbage(self):
        assert decode_image(b"not an image") is None
        assert decode_image(b"") is None

    def test_upscale_only_small_images(self):
        small = np.zeros((50, 40), dtype=np.uint8)
        large = np.zeros((1200, 900), dtype=np.uint8)

        assert upscale_small(small, 100).shape == (100, 80)
        assert upscale_small(large, 100) is large

    def test_enhance_returns_grayscale_uint8(self):
        img = np.full((64, 64, 3), 200, dtype=np.uint8)

        out = denoise_enhance_sharpen(img)

        assert out.ndim == 2
        assert out.dtype == np.uint8

    def test_prepare_without_enhancement(self):
        img = np.full((8, 8, 3), 30, dtype=np.uint8)

        out = prepare_for_ocr(img, enhance=False)

        assert out.shape == (8, 8)
        assert int(out[0, 0]) == 30
