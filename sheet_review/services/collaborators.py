"""
Collaborator adapters
Grade ledger and roster directory on top of the portal's document store
"""
import logging
from typing import Any, Dict, Iterable, List, Optional, Protocol

from pydantic import ValidationError

from ..core.constants import STUDENT_ROLES, StorageKeys
from ..schemas import GradeEntry, RosterStudent
from .document_store import DocumentStore

logger = logging.getLogger(__name__)


def _as_list(value: Any) -> List[Dict[str, Any]]:
    if not isinstance(value, list):
        return []
    return [v for v in value if isinstance(v, dict)]


class GradeLedger(Protocol):
    def get(self, test_id: str) -> List[GradeEntry]:
        ...

    def put(self, test_id: str, entries: List[GradeEntry]) -> None:
        ...


class RosterDirectory(Protocol):
    def students_in_section(self, section_id: str) -> List[RosterStudent]:
        ...


class DocumentGradeLedger:
    """
    Grade ledger stored as one shared list under ``smart-student-test-grades``.
    ``put`` replaces only the given test's entries.
    """

    def __init__(self, store: DocumentStore, key: str = StorageKeys.TEST_GRADES):
        self.store = store
        self.key = key

    def get(self, test_id: str) -> List[GradeEntry]:
        entries = []
        for raw in _as_list(self.store.get(self.key)):
            if raw.get("testId") != test_id:
                continue
            try:
                entries.append(GradeEntry.model_validate(raw))
            except ValidationError as e:
                logger.warning(f"Skipping malformed grade entry for test {test_id}: {e}")
        return entries

    def put(self, test_id: str, entries: List[GradeEntry]) -> None:
        others = [raw for raw in _as_list(self.store.get(self.key)) if raw.get("testId") != test_id]
        self.store.set(self.key, others + [e.to_document() for e in entries])


class DocumentRosterDirectory:
    """Students of a section from the portal's users and assignments"""

    def __init__(self, store: DocumentStore):
        self.store = store

    def students_in_section(self, section_id: str) -> List[RosterStudent]:
        if not section_id:
            return []
        assigned = {
            a.get("studentId")
            for a in _as_list(self.store.get(StorageKeys.STUDENT_ASSIGNMENTS))
            if a.get("sectionId") == section_id and a.get("isActive", True)
        }

        students = []
        for user in _as_list(self.store.get(StorageKeys.USERS)):
            if str(user.get("role", "")).lower() not in STUDENT_ROLES:
                continue
            if user.get("id") not in assigned and user.get("sectionId") != section_id:
                continue
            try:
                students.append(RosterStudent.model_validate(user))
            except ValidationError as e:
                logger.warning(f"Skipping malformed user record: {e}")
        return students


class StaticRosterDirectory:
    """Roster supplied up front, keyed by section id"""

    def __init__(self, sections: Optional[Dict[str, Iterable[RosterStudent]]] = None):
        self.sections = {k: list(v) for k, v in (sections or {}).items()}

    def students_in_section(self, section_id: str) -> List[RosterStudent]:
        return list(self.sections.get(section_id, []))
