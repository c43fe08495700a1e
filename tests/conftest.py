"""
Shared fixtures for the review engine tests
"""
import io
import os

os.environ.setdefault("LOG_TO_FILE", "false")

import pytest
from PIL import Image

from sheet_review.grader import OcrResult, TextExtractor
from sheet_review.schemas import RosterStudent, Test
from sheet_review.services import InMemoryDocumentStore, StaticRosterDirectory


class FakeOcrBackend:
    """
    Stand-in for Tesseract.

    Pages are told apart by their gray level: page ``i`` is rendered with
    value ``i * 10`` and recognized as ``texts[i]``.
    """

    def __init__(self, texts=None, available=True):
        self.texts = list(texts or [])
        self.available = available
        self.calls = 0

    def ensure_available(self):
        if not self.available:
            from sheet_review.core import OcrUnavailable
            raise OcrUnavailable("tesseract missing")

    def recognize(self, image, languages):
        self.calls += 1
        index = int(image[0, 0]) // 10
        text = self.texts[index] if index < len(self.texts) else ""
        return OcrResult(text=text, confidence=0.9)


class FakePageImage:
    def __init__(self, original):
        self.original = original


class FakePage:
    """pdfplumber page with an optional text layer"""

    def __init__(self, index, text=None, renders=None):
        self.index = index
        self.text = text
        self.renders = renders if renders is not None else []

    def extract_text(self):
        return self.text

    def to_image(self, resolution=72):
        self.renders.append(self.index)
        return FakePageImage(Image.new("RGB", (8, 8), (self.index * 10,) * 3))


class FakePdf:
    def __init__(self, pages):
        self.pages = pages

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False


def make_pdf(page_texts):
    """Fake PDF; page_texts holds the text layer per page (None = scanned)"""
    renders = []
    pages = [FakePage(i, text, renders) for i, text in enumerate(page_texts)]
    return FakePdf(pages), renders


def image_with_level(level=0):
    """PNG bytes of a uniform gray image"""
    buf = io.BytesIO()
    Image.new("RGB", (16, 16), (level,) * 3).save(buf, format="PNG")
    return buf.getvalue()


SHEET_TEXT = """Colegio San Martin
Nombre: Ana Torres   Curso: 8B
Prueba de Geografia

1. La Tierra gira alrededor del Sol
V (X)   F ( )

2. Cual es la capital de Francia
A) Paris (X)
B) Lyon ( )
C) Marsella ( )

3. Seleccione los rios que cruzan Europa
A) Danubio [X]
B) Amazonas [ ]
C) Rin [X]

4. Explique brevemente el ciclo del agua
El agua se evapora y luego llueve.
"""


@pytest.fixture
def test_definition():
    """Four-question test: tf, mc, ms and a free response"""
    return Test.model_validate({
        "id": "test-geo-1",
        "title": "Prueba de Geografia",
        "topic": "Geografia de Europa",
        "courseId": "course-8",
        "sectionId": "sec-8b",
        "subjectId": "subj-geo",
        "subjectName": "Geografia",
        "questions": [
            {"id": "q1", "type": "tf", "text": "La Tierra gira alrededor del Sol", "answer": True},
            {
                "id": "q2",
                "type": "mc",
                "text": "Cual es la capital de Francia",
                "options": ["Paris", "Lyon", "Marsella"],
                "correctIndex": 0,
            },
            {
                "id": "q3",
                "type": "ms",
                "text": "Seleccione los rios que cruzan Europa",
                "options": [
                    {"text": "Danubio", "correct": True},
                    {"text": "Amazonas", "correct": False},
                    {"text": "Rin", "isCorrect": True},
                ],
            },
            {"id": "q4", "type": "des", "prompt": "Explique brevemente el ciclo del agua"},
        ],
    })


@pytest.fixture
def roster():
    return [
        RosterStudent(id="s-ana", username="atorres", display_name="Ana Torres"),
        RosterStudent(id="s-luis", username="lperez", display_name="Luis Perez"),
        RosterStudent(id="s-marta", username="mdiaz", display_name="Marta Diaz Soto"),
    ]


@pytest.fixture
def directory(roster):
    return StaticRosterDirectory({"sec-8b": roster})


@pytest.fixture
def memory_store():
    return InMemoryDocumentStore()


@pytest.fixture
def fake_backend():
    return FakeOcrBackend()


@pytest.fixture
def extractor(fake_backend):
    return TextExtractor(backend=fake_backend, preprocess=False, workers=2)
