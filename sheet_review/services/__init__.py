# Services package
from .document_store import DocumentStore, InMemoryDocumentStore, JsonFileDocumentStore
from .collaborators import (
    DocumentGradeLedger,
    DocumentRosterDirectory,
    GradeLedger,
    RosterDirectory,
    StaticRosterDirectory,
)
from .review_store import ReviewStore

__all__ = [
    "DocumentStore",
    "InMemoryDocumentStore",
    "JsonFileDocumentStore",
    "DocumentGradeLedger",
    "DocumentRosterDirectory",
    "GradeLedger",
    "RosterDirectory",
    "StaticRosterDirectory",
    "ReviewStore",
]
