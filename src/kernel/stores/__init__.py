"""
Store adapters: key-based access to lectures and progress records.
"""

from src.kernel.stores.lecture_store import LectureStore
from src.kernel.stores.progress_store import ProgressStore

__all__ = [
    "LectureStore",
    "ProgressStore",
]
