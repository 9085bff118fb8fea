"""Pytest configuration shared by the test suite."""

from tests.mock_utils import MockBatch, MockFieldFilter, patch_mockfirestore

patch_mockfirestore()

__all__ = ["MockBatch", "MockFieldFilter", "patch_mockfirestore"]
