"""
Debug utility module for Piper backend.

Category switches come from the PIPER_DEBUG environment variable, e.g.
``PIPER_DEBUG=llm_requests,llm_responses`` or ``PIPER_DEBUG=all``.
"""

import logging
from typing import Iterable, Optional

from .config import get_settings

CATEGORIES = (
    "llm_requests",
    "llm_responses",
    "database_operations",
    "file_operations",
)

logger = logging.getLogger("piper_backend.debug")


class DebugLogger:
    def __init__(self, categories: Optional[Iterable[str]] = None):
        if categories is None:
            categories = get_settings().debug_categories
        self.enabled = self._expand(categories)

    @staticmethod
    def _expand(categories: Iterable[str]) -> set:
        names = {c.strip().lower() for c in categories if c and c.strip()}
        if "all" in names:
            return set(CATEGORIES)
        return names & set(CATEGORIES)

    def is_enabled(self, category: str) -> bool:
        """Check if a specific debug category is enabled."""
        return category in self.enabled

    def log(self, category: str, message: str, *args):
        """Log a message if the category is enabled."""
        if self.is_enabled(category):
            logger.info(f"[DEBUG {category.upper()}] {message}", *args)

    def debug_llm_requests(self, message: str):
        """Log LLM request debugging."""
        self.log("llm_requests", message)

    def debug_llm_responses(self, message: str):
        """Log LLM response debugging."""
        self.log("llm_responses", message)

    def debug_db(self, message: str):
        """Log database operation debugging."""
        self.log("database_operations", message)

    def debug_files(self, message: str):
        """Log file operation debugging."""
        self.log("file_operations", message)


# Global debug logger instance
_debug_logger = None

def get_debug_logger() -> DebugLogger:
    """Get the global debug logger instance."""
    global _debug_logger
    if _debug_logger is None:
        _debug_logger = DebugLogger()
    return _debug_logger
