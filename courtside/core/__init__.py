"""Core module for the courtside application."""

from .types import FirestoreDocument

__all__ = ["FirestoreDocument"]
