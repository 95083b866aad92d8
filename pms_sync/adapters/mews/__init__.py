"""
Mews PMS Adapter
"""

from .connector import MewsAdapter

__all__ = ["MewsAdapter"]
