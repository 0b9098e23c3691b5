from .disk_manager import DiskManager, DiskManagerStats
from .file_page_store import FilePageStore

__all__ = ["DiskManager", "DiskManagerStats", "FilePageStore"]
