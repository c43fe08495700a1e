"""
Unit tests for document matching
"""
from conftest import SHEET_TEXT
from sheet_review.core import DEGRADED_TEXT
from sheet_review.grader import DocumentMatcher
from sheet_review.grader.document_matching import question_bank_text, title_terms_for


class TestDocumentMatcher:
    """Test cases for the scan / question bank check"""

    def test_matching_scan(self, test_definition):
        matcher = DocumentMatcher()

        result = matcher.verify_test(SHEET_TEXT, test_definition, filename="scan.pdf")

        assert result.is_match
        assert result.coverage > 0.9
        assert not result.via_filename

    def test_unrelated_scan(self, test_definition):
        text = (
            "Guia de Matematicas\nResuelva las ecuaciones cuadraticas\n"
            "Calcule el discriminante de cada polinomio y grafique la parabola"
        )

        result = DocumentMatcher().verify_test(text, test_definition, filename="mate.pdf")

        assert not result.is_match
        assert result.coverage < 0.1

    def test_coverage_bounded(self, test_definition):
        """Coverage stays in [0, 1] for any input"""
        matcher = DocumentMatcher()
        for text in ("", SHEET_TEXT * 3, question_bank_text(test_definition.questions)):
            c = matcher.coverage(text, test_definition.questions)
            assert 0.0 <= c <= 1.0

    def test_full_bank_text_has_full_coverage(self, test_definition):
        matcher = DocumentMatcher()
        bank = question_bank_text(test_definition.questions)

        assert matcher.coverage(bank, test_definition.questions) == 1.0

    def test_empty_question_bank(self):
        result = DocumentMatcher().verify("cualquier texto largo del documento escaneado", [])

        assert result.coverage == 0.0
        assert not result.is_match

    def test_stopwords_do_not_count(self, test_definition):
        matcher = DocumentMatcher()

        assert "seleccione" not in matcher.bank_tokens(test_definition.questions)
        assert "danubio" in matcher.bank_tokens(test_definition.questions)

    def test_accents_and_case_ignored(self, test_definition):
        matcher = DocumentMatcher()
        text = SHEET_TEXT.upper().replace("FRANCIA", "FRÁNCIA")

        assert matcher.coverage(text, test_definition.questions) == matcher.coverage(
            SHEET_TEXT, test_definition.questions
        )


class TestFilenameFallback:
    """Test cases for degraded or very short text"""

    def test_degraded_text_accepted_by_filename(self, test_definition):
        result = DocumentMatcher().verify_test(
            DEGRADED_TEXT, test_definition, filename="geografia_ana.pdf", degraded=True
        )

        assert result.is_match
        assert result.via_filename

    def test_degraded_text_with_unrelated_filename(self, test_definition):
        result = DocumentMatcher().verify_test(
            DEGRADED_TEXT, test_definition, filename="IMG_2041.jpg", degraded=True
        )

        assert not result.is_match

    def test_long_text_never_uses_filename(self, test_definition):
        """A readable scan of another test is rejected even with a matching filename"""
        text = (
            "Guia de Matematicas\nResuelva las ecuaciones cuadraticas\n"
            "Calcule el discriminante de cada polinomio y grafique la parabola"
        )

        result = DocumentMatcher().verify_test(text, test_definition, filename="geografia.pdf")

        assert not result.is_match

    def test_title_terms(self, test_definition):
        assert title_terms_for(test_definition) == [
            "Prueba de Geografia",
            "Geografia de Europa",
            "Geografia",
        ]
