from .memory_page_store import InMemoryPageStore

__all__ = ["InMemoryPageStore"]
