"""
Primitive types and identifiers used throughout the index.

This module contains basic types that have no dependencies on other parts
of the system, avoiding circular imports.
"""

from .page_id import PageId

__all__ = ["PageId"]
