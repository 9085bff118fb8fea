"""Mock utilities for Firestore and Auth."""

import unittest.mock
from typing import Any, Optional

from mockfirestore import CollectionReference, Query
from mockfirestore.document import DocumentReference

MOCK_SERVER_TIMESTAMP = "2024-01-01T00:00:00"

# Every module that talks to Firestore through ``firebase_admin.firestore``.
FIRESTORE_MODULES = (
    "courtside.auth.routes",
    "courtside.match.services",
    "courtside.tournament.advancement",
    "courtside.tournament.services",
)


class MockFieldFilter:
    def __init__(self, field_path: str, op_string: str, value: Any) -> None:
        self.field_path = field_path
        self.op_string = op_string
        self.value = value


class MockBatch:
    """Write batch that applies its operations on commit."""

    def __init__(self, db: Any) -> None:
        self.db = db
        self.operations: list[tuple[str, Any, Any]] = []
        self.commit = unittest.mock.MagicMock(side_effect=self._real_commit)

    def update(self, ref: Any, data: Any) -> None:
        self.operations.append(("update", ref, data))

    def set(self, ref: Any, data: Any, merge: bool = False) -> None:
        self.operations.append(("set", ref, data))

    def delete(self, ref: Any) -> None:
        self.operations.append(("delete", ref, None))

    def _real_commit(self) -> None:
        for op, ref, data in self.operations:
            if op == "delete":
                ref.delete()
            elif op == "set":
                ref.set(data)
            else:
                ref.update(data)


class MockFirestoreBuilder:
    """Builder to modularize mockfirestore and firebase_admin patching."""

    @staticmethod
    def patch_db_read() -> None:
        """Apply monkeypatches to mockfirestore to support FieldFilter and equality."""

        def collection_where(
            self: Any,
            field_path: Optional[str] = None,
            op_string: Optional[str] = None,
            value: Any = None,
            filter: Any = None,
        ) -> Any:  # noqa: E501
            if filter:
                return self._where(filter.field_path, filter.op_string, filter.value)
            return self._where(field_path, op_string, value)

        if not hasattr(CollectionReference, "_where"):
            CollectionReference._where = CollectionReference.where
            CollectionReference.where = collection_where

        def query_where(
            self: Any,
            field_path: Optional[str] = None,
            op_string: Optional[str] = None,
            value: Any = None,
            filter: Any = None,
        ) -> Any:
            if filter:
                return self._where(filter.field_path, filter.op_string, filter.value)
            return self._where(field_path, op_string, value)

        if not hasattr(Query, "_where"):
            Query._where = Query.where
            Query.where = query_where

        def doc_ref_eq(self: Any, other: Any) -> bool:
            if not isinstance(other, DocumentReference):
                return False
            return self._path == other._path

        if not hasattr(DocumentReference, "_orig_eq"):
            DocumentReference._orig_eq = DocumentReference.__eq__
            DocumentReference.__eq__ = doc_ref_eq
            # get_all puts references in a set.
            DocumentReference.__hash__ = lambda self: hash(tuple(self._path))

    @staticmethod
    def firestore_module(db: Any) -> unittest.mock.MagicMock:
        """Stand-in for ``firebase_admin.firestore`` bound to a mock client."""
        module = unittest.mock.MagicMock()
        module.client.return_value = db
        module.FieldFilter = MockFieldFilter
        module.SERVER_TIMESTAMP = MOCK_SERVER_TIMESTAMP
        return module

    @staticmethod
    def patch_firestore_modules(db: Any) -> list[Any]:
        """Start patchers that route every service module to ``db``."""
        module = MockFirestoreBuilder.firestore_module(db)
        patchers = [
            unittest.mock.patch(f"{name}.firestore", new=module)
            for name in FIRESTORE_MODULES
        ]
        for p in patchers:
            p.start()
        return patchers


def patch_mockfirestore() -> None:
    """Apply monkeypatches to mockfirestore to support FieldFilter and equality."""
    MockFirestoreBuilder.patch_db_read()
