"""
Grading Engine Module
Auto-grades objective questions from marks found in OCR text
"""
import logging
import re
import string
from dataclasses import asdict, dataclass, field
from functools import lru_cache
from typing import Any, Dict, List, Optional, Sequence, Set, Tuple

from ..config import settings
from ..core.constants import MARK_GLYPHS, QuestionOutcome
from ..schemas import (
    FreeResponseQuestion,
    MultipleChoiceQuestion,
    MultiSelectQuestion,
    Question,
    TrueFalseQuestion,
)
from ..utils.helpers import scale_score, tokenize

logger = logging.getLogger(__name__)

_G = re.escape(MARK_GLYPHS)
_LETTERS = "A-Za-zÁÉÍÓÚÜÑáéíóúüñ"

# (x) [x] {x} *x* or a lone glyph
MARK_RE = re.compile(
    rf"\(\s*[{_G}]\s*\)"
    rf"|\[\s*[{_G}]\s*\]"
    rf"|\{{\s*[{_G}]\s*\}}"
    rf"|\*\s*[{_G}]\s*\*"
    rf"|(?<!\S)[{_G}](?!\S)"
)
EMPTY_BOX_RE = re.compile(r"\(\s*\)|\[\s*\]|\{\s*\}")

_BRACKET_MARK = rf"[\(\[\{{]\s*[{_G}]\s*[\)\]\}}]"
TRUE_MARK_RE = re.compile(
    rf"(?<![{_LETTERS}])(?:V|T|[Vv]erdadero|VERDADERO|[Tt]rue|TRUE)\s*{_BRACKET_MARK}"
)
FALSE_MARK_RE = re.compile(
    rf"(?<![{_LETTERS}])(?:F|[Ff]also|FALSO|[Ff]alse|FALSE)\s*{_BRACKET_MARK}"
)

# Leading tokens of a question used to find it in the scan
ANCHOR_TOKENS = 5


def has_mark(line: str) -> bool:
    """Line contains a selected mark"""
    return MARK_RE.search(line) is not None


def option_letter(index: int) -> Optional[str]:
    if 0 <= index < len(string.ascii_uppercase):
        return string.ascii_uppercase[index]
    return None


@lru_cache(maxsize=None)
def _label_re(letter: str) -> re.Pattern:
    """A), (A), [A], A-, A. or A: not glued to a preceding word"""
    return re.compile(
        rf"(?<![{_LETTERS}0-9])(?:\(\s*{letter}\s*\)|\[\s*{letter}\s*\]|{letter}\s*[\)\.\-:])",
        re.IGNORECASE,
    )


def _token_string(text: str) -> str:
    return " " + " ".join(tokenize(text)) + " "


def _contains_phrase(line: str, phrase: str) -> bool:
    """Word-bounded containment after normalization"""
    needle = " ".join(tokenize(phrase))
    if not needle:
        return False
    return f" {needle} " in _token_string(line)


@dataclass
class QuestionResult:
    """Result for a single question"""
    question_id: str
    kind: str
    detected: Optional[Any]
    expected: Optional[Any]
    result: QuestionOutcome
    points: int = 0


@dataclass
class GradeReport:
    """Auto-grading outcome for one scan"""
    score: int = 0
    question_count: int = 0
    total_points: float = 0.0
    details: List[QuestionResult] = field(default_factory=list)
    manual_review: List[str] = field(default_factory=list)

    @property
    def points(self) -> int:
        return scale_score(self.score, self.question_count, self.total_points)

    @property
    def percent(self) -> int:
        return scale_score(self.score, self.question_count, 100)

    def to_dict(self) -> Dict:
        data = asdict(self)
        data["points"] = self.points
        data["percent"] = self.percent
        return data


class GradingEngine:
    """
    Grades objective questions against raw OCR lines.

    Stateless apart from configuration; identical input always
    yields identical output.
    """

    def __init__(self, mark_window: Optional[int] = None):
        self.mark_window = settings.MARK_WINDOW if mark_window is None else mark_window

    def grade(self, text: str, questions: Sequence[Question]) -> int:
        """Number of auto-gradable questions answered correctly"""
        return self.evaluate(text, questions).score

    def evaluate(
        self,
        text: str,
        questions: Sequence[Question],
        total_points: Optional[float] = None
    ) -> GradeReport:
        """
        Grade every question and collect per-question details.

        Args:
            text: Raw extracted text (not normalized)
            questions: Ordered question bank
            total_points: Weighted total; defaults to the question count

        Returns:
            GradeReport
        """
        lines = [l.rstrip() for l in (text or "").splitlines()]
        blocks = self._question_blocks(lines, questions)

        report = GradeReport(
            question_count=len(questions),
            total_points=total_points or float(len(questions)),
        )
        for q, block in zip(questions, blocks):
            scope = block if block is not None else lines
            result = self._grade_question(q, scope)
            report.details.append(result)
            report.score += result.points
            if result.result == QuestionOutcome.MANUAL:
                report.manual_review.append(q.id)

        logger.debug(f"Auto-graded {report.score}/{report.question_count}")
        return report

    def _grade_question(self, q: Question, lines: List[str]) -> QuestionResult:
        if isinstance(q, TrueFalseQuestion):
            return self._grade_true_false(q, lines)
        if isinstance(q, MultipleChoiceQuestion):
            return self._grade_multiple_choice(q, lines)
        if isinstance(q, MultiSelectQuestion):
            return self._grade_multi_select(q, lines)
        if isinstance(q, FreeResponseQuestion):
            return QuestionResult(
                question_id=q.id,
                kind=q.type,
                detected=None,
                expected=q.sample_answer,
                result=QuestionOutcome.MANUAL,
            )
        raise TypeError(f"Unsupported question type: {type(q).__name__}")

    # ===== Question localization =====

    def _question_blocks(
        self,
        lines: List[str],
        questions: Sequence[Question]
    ) -> List[Optional[List[str]]]:
        """
        Slice the scan into per-question line ranges.

        A question whose wording is not found gets None and is graded
        against the whole document.
        """
        starts: List[Optional[int]] = []
        cursor = 0
        token_lines = [_token_string(l) for l in lines]
        for q in questions:
            wording = q.prompt if isinstance(q, FreeResponseQuestion) else q.text
            anchor = tokenize(wording)[:ANCHOR_TOKENS]
            start = None
            if len(anchor) >= 2:
                needle = " " + " ".join(anchor) + " "
                for i in range(cursor, len(lines)):
                    if needle in token_lines[i]:
                        start = i
                        cursor = i + 1
                        break
            starts.append(start)

        blocks: List[Optional[List[str]]] = []
        for idx, start in enumerate(starts):
            if start is None:
                blocks.append(None)
                continue
            end = next((s for s in starts[idx + 1:] if s is not None), len(lines))
            blocks.append(lines[start:end])
        return blocks

    # ===== True / False =====

    def _grade_true_false(self, q: TrueFalseQuestion, lines: List[str]) -> QuestionResult:
        true_marked = any(TRUE_MARK_RE.search(l) for l in lines)
        false_marked = any(FALSE_MARK_RE.search(l) for l in lines)

        if true_marked == false_marked:
            detected = "both" if true_marked else None
            return QuestionResult(
                question_id=q.id,
                kind=q.type,
                detected=detected,
                expected=q.answer,
                result=QuestionOutcome.AMBIGUOUS,
            )

        answer = true_marked
        correct = answer == q.answer
        return QuestionResult(
            question_id=q.id,
            kind=q.type,
            detected=answer,
            expected=q.answer,
            result=QuestionOutcome.CORRECT if correct else QuestionOutcome.WRONG,
            points=1 if correct else 0,
        )

    # ===== Multiple choice / multi select =====

    def _grade_multiple_choice(self, q: MultipleChoiceQuestion, lines: List[str]) -> QuestionResult:
        selected = self.selected_options(lines, q.options)
        expected = option_letter(q.correct_index)
        detected = sorted(option_letter(i) for i in selected)

        if len(selected) > 1:
            outcome = QuestionOutcome.AMBIGUOUS
        elif selected == {q.correct_index}:
            outcome = QuestionOutcome.CORRECT
        else:
            outcome = QuestionOutcome.WRONG

        return QuestionResult(
            question_id=q.id,
            kind=q.type,
            detected=detected[0] if len(detected) == 1 else (detected or None),
            expected=expected,
            result=outcome,
            points=1 if outcome == QuestionOutcome.CORRECT else 0,
        )

    def _grade_multi_select(self, q: MultiSelectQuestion, lines: List[str]) -> QuestionResult:
        selected = self.selected_options(lines, [o.text for o in q.options])
        correct = {i for i, o in enumerate(q.options) if o.correct}

        is_correct = bool(correct) and selected == correct
        return QuestionResult(
            question_id=q.id,
            kind=q.type,
            detected=sorted(option_letter(i) for i in selected),
            expected=sorted(option_letter(i) for i in correct),
            result=QuestionOutcome.CORRECT if is_correct else QuestionOutcome.WRONG,
            points=1 if is_correct else 0,
        )

    def selected_options(self, lines: List[str], options: Sequence[str]) -> Set[int]:
        """
        Indexes of options the student marked.

        An option counts as selected by the first rule that fires:
            1. its letter label and a mark share a line segment
            2. its text sits next to a free-standing mark line
            3. its text and a mark share a line segment
        """
        segments = [self._labeled_segments(l, len(options)) for l in lines]
        near_free_mark = self._options_near_free_marks(lines, segments, options)

        selected: Set[int] = set()
        for i in range(len(options)):
            if (
                self._label_with_mark(segments, i)
                or i in near_free_mark
                or self._text_with_mark(lines, segments, options, i)
            ):
                selected.add(i)
        return selected

    @staticmethod
    def _labeled_segments(line: str, option_count: int) -> Dict[int, str]:
        """Split a line at option labels; text before the first label joins it"""
        hits: List[Tuple[int, int]] = []
        for i in range(option_count):
            letter = option_letter(i)
            if letter is None:
                continue
            m = _label_re(letter).search(line)
            if m:
                hits.append((m.start(), i))
        hits.sort()

        segments: Dict[int, str] = {}
        for k, (start, i) in enumerate(hits):
            begin = 0 if k == 0 else start
            end = hits[k + 1][0] if k + 1 < len(hits) else len(line)
            segments[i] = line[begin:end]
        return segments

    @staticmethod
    def _label_with_mark(segments: List[Dict[int, str]], index: int) -> bool:
        return any(index in segs and has_mark(segs[index]) for segs in segments)

    @staticmethod
    def _text_with_mark(
        lines: List[str],
        segments: List[Dict[int, str]],
        options: Sequence[str],
        index: int
    ) -> bool:
        option = options[index]
        for line, segs in zip(lines, segments):
            if segs:
                part = segs.get(index)
                if part and has_mark(part) and _contains_phrase(part, option):
                    return True
                continue
            if not has_mark(line) or not _contains_phrase(line, option):
                continue
            others = [o for j, o in enumerate(options) if j != index and _contains_phrase(line, o)]
            if not others:
                return True
        return False

    def _options_near_free_marks(
        self,
        lines: List[str],
        segments: List[Dict[int, str]],
        options: Sequence[str]
    ) -> Set[int]:
        """
        Options whose text is the unique nearest neighbour of a mark that
        stands on its own line (no label, no option text).
        """
        def mentions(line: str) -> List[int]:
            return [j for j, o in enumerate(options) if _contains_phrase(line, o)]

        picked: Set[int] = set()
        for m, line in enumerate(lines):
            if segments[m] or not has_mark(line) or mentions(line):
                continue

            best: Dict[int, int] = {}
            lo, hi = max(0, m - self.mark_window), min(len(lines), m + self.mark_window + 1)
            for j in range(lo, hi):
                if j == m or EMPTY_BOX_RE.search(lines[j]) or has_mark(lines[j]):
                    continue
                found = mentions(lines[j])
                if len(found) != 1:
                    continue
                dist = abs(j - m)
                best[found[0]] = min(dist, best.get(found[0], dist))

            if not best:
                continue
            nearest = min(best.values())
            winners = [i for i, d in best.items() if d == nearest]
            if len(winners) == 1:
                picked.add(winners[0])
        return picked
