"""Core data types for the courtside application."""

from typing import Any, TypedDict


class FirestoreDocument(TypedDict, total=False):
    """Fields every stored document may carry."""

    id: str
    createdAt: Any
    updatedAt: Any
