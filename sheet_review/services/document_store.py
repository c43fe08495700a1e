"""
Document Store
==============
Key-value JSON document stores backing review history and the grade ledger.
"""

import copy
import json
import logging
import os
import threading
from pathlib import Path
from typing import Any, Dict, List, Optional, Protocol, Union

from ..config import settings

logger = logging.getLogger(__name__)


class DocumentStore(Protocol):
    def get(self, key: str) -> Optional[Any]:
        ...

    def set(self, key: str, value: Any) -> None:
        ...


class InMemoryDocumentStore:
    """Process-local store; values are deep-copied in and out"""

    def __init__(self, initial: Optional[Dict[str, Any]] = None):
        self._documents: Dict[str, Any] = copy.deepcopy(initial or {})
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[Any]:
        with self._lock:
            return copy.deepcopy(self._documents.get(key))

    def set(self, key: str, value: Any) -> None:
        with self._lock:
            self._documents[key] = copy.deepcopy(value)

    def keys(self) -> List[str]:
        with self._lock:
            return list(self._documents)


class JsonFileDocumentStore:
    """
    Persistent store keeping every document in a single JSON file.
    Each write replaces the file atomically.
    """

    def __init__(self, storage_file: Optional[Union[str, Path]] = None):
        """
        Initialize file store.

        Args:
            storage_file: JSON file holding all documents
        """
        self.storage_file = Path(storage_file or settings.STORE_FILE)
        self._documents: Dict[str, Any] = {}
        self._lock = threading.Lock()

        self.storage_file.parent.mkdir(parents=True, exist_ok=True)
        self._load()

    def _load(self):
        """Load documents from disk."""
        if not self.storage_file.exists():
            return
        try:
            with open(self.storage_file, 'r', encoding='utf-8') as f:
                self._documents = json.load(f)
            logger.info(f"Loaded {len(self._documents)} documents from {self.storage_file}")
        except json.JSONDecodeError as e:
            logger.warning(f"Could not parse {self.storage_file}, starting empty: {e}")
            self._documents = {}

    def _save(self, documents: Dict[str, Any]):
        """Write documents to a temp file and swap it in."""
        tmp_path = self.storage_file.with_suffix(self.storage_file.suffix + ".tmp")
        try:
            with open(tmp_path, 'w', encoding='utf-8') as f:
                json.dump(documents, f, ensure_ascii=False, indent=2)
            os.replace(tmp_path, self.storage_file)
        except OSError as e:
            logger.error(f"Could not save documents: {e}")
            raise

    def get(self, key: str) -> Optional[Any]:
        with self._lock:
            return copy.deepcopy(self._documents.get(key))

    def set(self, key: str, value: Any) -> None:
        with self._lock:
            documents = {**self._documents, key: copy.deepcopy(value)}
            self._save(documents)
            self._documents = documents

    def keys(self) -> List[str]:
        with self._lock:
            return list(self._documents)
