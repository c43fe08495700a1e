"""
Document Matching Module
Checks that extracted text belongs to the test it was uploaded against
"""
import logging
from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence, Set

from ..config import settings
from ..core.constants import DEGRADED_TEXT
from ..schemas import (
    FreeResponseQuestion,
    MultipleChoiceQuestion,
    MultiSelectQuestion,
    Question,
    Test,
    TrueFalseQuestion,
)
from ..utils.helpers import normalize_text, token_set, tokenize

logger = logging.getLogger(__name__)

# Words too common in exam wording to tell one test from another
MATCH_STOPWORDS = frozenset({
    # Spanish
    "para", "como", "cual", "cuales", "entre", "sobre", "este", "esta",
    "estos", "estas", "donde", "cuando", "porque", "tiene", "tienen",
    "puede", "segun", "desde", "hasta", "todos", "todas", "otro", "otra",
    "otros", "otras", "ninguna", "ninguno", "siguiente", "siguientes",
    "correcta", "correcto", "correctas", "incorrecta", "alternativa",
    "alternativas", "pregunta", "respuesta", "opcion", "seleccione",
    "marque", "indique", "verdadero", "falso", "anteriores", "ellos",
    "ellas", "tambien", "muy", "mas", "menos", "cada", "solo",
    # English
    "that", "this", "with", "from", "which", "what", "true", "false",
    "following", "correct", "answer", "question", "option", "select",
    "mark", "their", "there", "about", "into", "your", "these", "those",
    "none", "above", "below", "have", "does",
})


@dataclass
class MatchResult:
    is_match: bool
    coverage: float
    via_filename: bool = False


def question_bank_text(questions: Sequence[Question]) -> str:
    """Concatenate every question's wording and options"""
    parts: List[str] = []
    for q in questions:
        if isinstance(q, TrueFalseQuestion):
            parts.append(q.text)
        elif isinstance(q, MultipleChoiceQuestion):
            parts.append(q.text)
            parts.extend(q.options)
        elif isinstance(q, MultiSelectQuestion):
            parts.append(q.text)
            parts.extend(o.text for o in q.options)
        elif isinstance(q, FreeResponseQuestion):
            parts.append(q.prompt)
            if q.sample_answer:
                parts.append(q.sample_answer)
    return "\n".join(p for p in parts if p)


def title_terms_for(test: Test) -> List[str]:
    """Title, topic and subject name of a test, used by the filename fallback"""
    return [t for t in (test.title, test.topic, test.subject_name) if t]


class DocumentMatcher:
    """Bag-of-tokens containment check between a scan and a question bank"""

    def __init__(
        self,
        threshold: Optional[float] = None,
        min_token_length: Optional[int] = None,
        min_text_length: Optional[int] = None,
        filename_coverage: Optional[float] = None
    ):
        self.threshold = settings.MATCH_THRESHOLD if threshold is None else threshold
        self.min_token_length = min_token_length or settings.MATCH_MIN_TOKEN_LENGTH
        self.min_text_length = (
            settings.MIN_TEXT_LENGTH if min_text_length is None else min_text_length
        )
        self.filename_coverage = (
            settings.FILENAME_FALLBACK_COVERAGE if filename_coverage is None else filename_coverage
        )

    def bank_tokens(self, questions: Sequence[Question]) -> Set[str]:
        """Distinguishing tokens drawn from the question bank"""
        return {
            t for t in tokenize(question_bank_text(questions), self.min_token_length)
            if t not in MATCH_STOPWORDS
        }

    def coverage(self, text: str, questions: Sequence[Question]) -> float:
        bank = self.bank_tokens(questions)
        if not bank:
            return 0.0
        found = bank & token_set(text)
        return len(found) / len(bank)

    def is_short(self, text: Optional[str], degraded: bool = False) -> bool:
        """Sentinel, flagged or below the usable length"""
        if degraded or text is None or text == DEGRADED_TEXT:
            return True
        return len(normalize_text(text)) <= self.min_text_length

    def verify(
        self,
        text: str,
        questions: Sequence[Question],
        filename: Optional[str] = None,
        title_terms: Iterable[str] = (),
        degraded: bool = False
    ) -> MatchResult:
        """
        Decide whether ``text`` was scanned from the test owning ``questions``.

        Args:
            text: Extracted text
            questions: The test's question bank
            filename: Uploaded filename, only used for short/degraded text
            title_terms: Title/topic/subject of the test for the filename fallback
            degraded: Extraction flagged the text as unusable

        Returns:
            MatchResult with coverage in [0, 1]
        """
        coverage = self.coverage(text, questions)
        result = MatchResult(is_match=coverage >= self.threshold, coverage=coverage)
        if result.is_match:
            return result

        if self.is_short(text, degraded):
            fallback = self._filename_fallback(filename, title_terms)
            if fallback is not None:
                logger.info(f"Accepted '{filename}' by filename (text unusable)")
                return fallback

        return result

    def verify_test(
        self,
        text: str,
        test: Test,
        filename: Optional[str] = None,
        degraded: bool = False
    ) -> MatchResult:
        return self.verify(
            text,
            test.questions,
            filename=filename,
            title_terms=title_terms_for(test),
            degraded=degraded
        )

    def _filename_fallback(
        self,
        filename: Optional[str],
        title_terms: Iterable[str]
    ) -> Optional[MatchResult]:
        if not filename:
            return None
        terms: Set[str] = set()
        for term in title_terms:
            terms |= token_set(term, 3)
        name_tokens = token_set(filename.rsplit(".", 1)[0], 3)
        if not terms or not (name_tokens & terms):
            return None
        return MatchResult(is_match=True, coverage=self.filename_coverage, via_filename=True)
