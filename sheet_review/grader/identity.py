"""
Identity Resolution Module
Guesses the student's name from a scan and matches it against the roster
"""
import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Iterable, List, Optional, Sequence, Set

from ..config import settings
from ..core.constants import DEGRADED_TEXT
from ..schemas import RosterStudent
from ..utils.helpers import jaccard, normalize_text, strip_diacritics, token_set, tokenize

logger = logging.getLogger(__name__)

_UPPER = "A-ZÁÉÍÓÚÜÑ"
_LOWER = "a-záéíóúüñ"
_LETTERS = _UPPER + _LOWER

LABEL_RE = re.compile(
    r"^\s*(?:nombre(?:\s+(?:del?|de\s+la)\s+(?:estudiante|alumn[oa]))?"
    r"|estudiante|alumn[oa]|student(?:\s+name)?|name)"
    r"(?:\s*[:\-–.]\s*|\s+|$)(?P<rest>.*)$",
    re.IGNORECASE,
)

_NEVER_RE = re.compile(r"(?!x)x")


def cutoff_pattern(header_fields: Iterable[str]) -> re.Pattern:
    """
    Another header field starting on the same line ends the name.

    Matched against text folded by ``_fold``.
    """
    words = sorted({normalize_text(w) for w in header_fields if w}, key=len, reverse=True)
    if not words:
        return _NEVER_RE
    return re.compile(rf"\b(?:{'|'.join(map(re.escape, words))})\b\s*[:\-.#]?")


def _fold(text: str) -> str:
    """Lowercase and strip accents one character at a time, keeping offsets"""
    return "".join((strip_diacritics(ch) or " ").lower()[:1] for ch in text)


NAME_TOKEN_RE = re.compile(rf"^[{_LETTERS}][{_LETTERS}'\-]*$")
TOKEN_SPLIT_RE = re.compile(r"[\s,;:/|_()\[\]{}.]+")

CAPITALIZED_LINE_RE = re.compile(
    rf"^[{_UPPER}][{_LOWER}]+(?:[ \-][{_UPPER}][{_LOWER}]+){{1,3}}$"
)
COMMA_NAME_RE = re.compile(
    rf"([{_UPPER}][{_LOWER}]+(?:[ \t]+[{_UPPER}][{_LOWER}]+)?)[ \t]*,[ \t]*"
    rf"([{_UPPER}][{_LOWER}]+(?:[ \t]+[{_UPPER}][{_LOWER}]+)?)"
)

MAX_NAME_TOKENS = 5


@dataclass
class RosterCandidate:
    student: RosterStudent
    similarity: float


@dataclass
class RosterMatch:
    """Result of matching a guessed name against a section roster"""
    student: Optional[RosterStudent] = None
    confidence: float = 0.0
    found: bool = False
    candidates: List[RosterCandidate] = field(default_factory=list)

    @property
    def student_id(self) -> Optional[str]:
        return self.student.id if self.student else None


@dataclass
class IdentityResolution:
    guessed_name: str
    match: RosterMatch
    answer_key: bool = False

    @property
    def found(self) -> bool:
        return self.match.found and not self.answer_key

    @property
    def student_id(self) -> Optional[str]:
        return self.match.student_id if self.found else None

    @property
    def student_name(self) -> str:
        if self.found and self.match.student:
            return self.match.student.label
        return self.guessed_name


def _titlecase(token: str) -> str:
    if token.isupper() or token.islower():
        return token[:1].upper() + token[1:].lower()
    return token


class IdentityResolver:
    """
    Name guessing and fuzzy roster matching.

    Name guessing is an ordered chain of heuristics; the first one that
    returns a candidate wins.
    """

    def __init__(
        self,
        denylist: Optional[Iterable[str]] = None,
        answer_key_markers: Optional[Iterable[str]] = None,
        top_k: Optional[int] = None,
        confident_similarity: Optional[float] = None,
        scan_lines: Optional[int] = None,
        label_window: Optional[int] = None,
        header_fields: Optional[Iterable[str]] = None
    ):
        self.denylist: Set[str] = {
            normalize_text(w) for w in (denylist if denylist is not None else settings.NAME_DENYLIST)
        }
        self.answer_key_markers: Set[str] = {
            normalize_text(w) for w in (answer_key_markers or settings.ANSWER_KEY_MARKERS)
        }
        self.top_k = top_k or settings.ROSTER_TOP_K
        self.confident_similarity = (
            settings.ROSTER_CONFIDENT_SIMILARITY if confident_similarity is None else confident_similarity
        )
        self.scan_lines = scan_lines or settings.NAME_SCAN_LINES
        self.label_window = label_window or settings.NAME_LABEL_WINDOW
        self.cutoff_re = cutoff_pattern(
            header_fields if header_fields is not None else settings.NAME_HEADER_FIELDS
        )

        self._text_heuristics: List[Callable[[List[str]], Optional[str]]] = [
            self._from_label_line,
            self._from_lines_after_label,
            self._from_capitalized_line,
            self._from_comma_pattern,
        ]

    # ===== Name guessing =====

    def is_answer_key(self, filename: Optional[str]) -> bool:
        """Filename carries an answer-key marker (clave, key, ...)"""
        if not filename:
            return False
        return bool(token_set(Path(filename).stem) & self.answer_key_markers)

    def clean_candidate(
        self,
        raw: str,
        min_tokens: int = 1,
        exclude: Iterable[str] = ()
    ) -> Optional[str]:
        """
        Strip noise from a candidate name.

        Drops digit-bearing tokens, single letters, and institutional
        keywords; cuts at the next header field on the same line.
        """
        if not raw:
            return None
        cut = self.cutoff_re.search(_fold(raw))
        if cut:
            raw = raw[: cut.start()]

        kept = []
        for tok in TOKEN_SPLIT_RE.split(raw):
            tok = tok.strip("-'")
            if len(tok) < 2 or not NAME_TOKEN_RE.match(tok):
                continue
            if normalize_text(tok) in self.denylist or normalize_text(tok) in exclude:
                continue
            kept.append(_titlecase(tok))

        if len(kept) < min_tokens:
            return None
        return " ".join(kept[:MAX_NAME_TOKENS])

    def guess_name(
        self,
        text: Optional[str],
        filename: Optional[str] = None,
        exclude_terms: Iterable[str] = ()
    ) -> str:
        """
        Guess the student's name from OCR text, falling back to the filename.

        ``exclude_terms`` (test title, topic, subject) are removed from
        the filename candidate, where they commonly sit next to the name.

        Returns:
            Candidate name, or "" when nothing qualifies
        """
        if text and text != DEGRADED_TEXT:
            lines = [
                l.strip() for l in text.splitlines()
                if l.strip() and not self._has_answer_key_marker(l)
            ]
            for heuristic in self._text_heuristics:
                name = heuristic(lines)
                if name:
                    logger.debug(f"Name '{name}' found by {heuristic.__name__}")
                    return name

        return self._from_filename(filename, exclude_terms) or ""

    def _has_answer_key_marker(self, line: str) -> bool:
        return bool(token_set(line) & self.answer_key_markers)

    def _from_label_line(self, lines: List[str]) -> Optional[str]:
        for line in lines:
            m = LABEL_RE.match(line)
            if m:
                name = self.clean_candidate(m.group("rest"))
                if name:
                    return name
        return None

    def _from_lines_after_label(self, lines: List[str]) -> Optional[str]:
        for i, line in enumerate(lines):
            if not LABEL_RE.match(line):
                continue
            for follow in lines[i + 1: i + 1 + self.label_window]:
                if LABEL_RE.match(follow):
                    break
                name = self.clean_candidate(follow, min_tokens=2)
                if name:
                    return name
        return None

    def _from_capitalized_line(self, lines: List[str]) -> Optional[str]:
        for line in lines[: self.scan_lines]:
            if not CAPITALIZED_LINE_RE.match(line):
                continue
            if set(tokenize(line)) & self.denylist:
                continue
            return line
        return None

    def _from_comma_pattern(self, lines: List[str]) -> Optional[str]:
        for line in lines:
            for m in COMMA_NAME_RE.finditer(line):
                last, first = m.group(1), m.group(2)
                if set(tokenize(f"{last} {first}")) & self.denylist:
                    continue
                return f"{first} {last}"
        return None

    def _from_filename(
        self,
        filename: Optional[str],
        exclude_terms: Iterable[str] = ()
    ) -> Optional[str]:
        if not filename:
            return None
        excluded: Set[str] = set()
        for term in exclude_terms:
            excluded |= token_set(term, 3)
        return self.clean_candidate(Path(filename).stem, exclude=excluded)

    # ===== Roster matching =====

    @staticmethod
    def similarity(a: str, b: str) -> float:
        """Order-insensitive token intersection over union"""
        return jaccard(token_set(a, 2), token_set(b, 2))

    def _is_confident(self, name: str, student: RosterStudent) -> bool:
        norm = normalize_text(name)
        if not norm:
            return False
        if norm == normalize_text(student.label) or norm == normalize_text(student.username):
            return True

        guess_tokens = token_set(name, 2)
        student_tokens = token_set(student.label, 2)
        if not guess_tokens or not student_tokens:
            return False
        if guess_tokens <= student_tokens and len(guess_tokens) >= 2:
            return True
        if student_tokens <= guess_tokens and len(student_tokens) >= 2:
            return True
        return jaccard(guess_tokens, student_tokens) >= self.confident_similarity

    def match_roster(self, name: str, roster: Sequence[RosterStudent]) -> RosterMatch:
        """
        Match a guessed name against the section roster.

        A confident, unique match sets ``found``; otherwise the top-K
        candidates are returned for manual resolution.
        """
        ranked = sorted(
            (RosterCandidate(student=s, similarity=self.similarity(name, s.label)) for s in roster),
            key=lambda c: (-c.similarity, normalize_text(c.student.label), c.student.id)
        )
        candidates = ranked[: self.top_k]

        confident = [c for c in ranked if self._is_confident(name, c.student)]
        if not confident:
            return RosterMatch(candidates=candidates)

        best = confident[0]
        ties = [c for c in confident if c.similarity == best.similarity]
        if len(ties) > 1:
            logger.info(
                f"Ambiguous roster match for '{name}': "
                f"{', '.join(c.student.label for c in ties)}"
            )
            return RosterMatch(confidence=best.similarity, candidates=candidates)

        return RosterMatch(
            student=best.student,
            confidence=best.similarity,
            found=True,
            candidates=candidates
        )

    def resolve(
        self,
        text: str,
        filename: Optional[str],
        roster: Sequence[RosterStudent],
        exclude_terms: Iterable[str] = ()
    ) -> IdentityResolution:
        """Guess and match; answer keys never resolve to a roster identity"""
        guessed = self.guess_name(text, filename, exclude_terms)

        if self.is_answer_key(filename):
            logger.info(f"'{filename}' is an answer key, skipping roster assignment")
            ranked = self.match_roster(guessed, roster)
            return IdentityResolution(
                guessed_name=guessed,
                match=RosterMatch(candidates=ranked.candidates),
                answer_key=True
            )

        match = self.match_roster(guessed, roster)
        if match.found:
            logger.info(f"Matched '{guessed}' to {match.student.label} ({match.confidence:.2f})")
        else:
            logger.info(f"No confident roster match for '{guessed}'")
        return IdentityResolution(guessed_name=guessed, match=match)
