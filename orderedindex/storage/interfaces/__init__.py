"""
Interfaces for the storage system.

This module contains interfaces for the storage system,
which are used to abstract the underlying storage implementation.
"""

from .page_store import PageStore

__all__ = ['PageStore']
