"""
Adapters layer - External integrations (JSON file storage).
"""

from .json_storage import JsonStorage

__all__ = ["JsonStorage"]
