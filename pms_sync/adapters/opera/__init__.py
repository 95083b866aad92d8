"""
Oracle OPERA Cloud PMS Adapter
"""

from .connector import OperaAdapter

__all__ = ["OperaAdapter"]
