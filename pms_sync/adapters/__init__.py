"""
PMS vendor adapters
"""

from .cloudbeds import CloudbedsAdapter
from .mews import MewsAdapter
from .opera import OperaAdapter
from .protel import ProtelAdapter

__all__ = ["CloudbedsAdapter", "MewsAdapter", "OperaAdapter", "ProtelAdapter"]
