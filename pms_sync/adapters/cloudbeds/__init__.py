"""
Cloudbeds PMS Adapter

Cloud PMS for independent properties, REST API with bearer tokens.
"""

from .connector import CloudbedsAdapter

__all__ = ["CloudbedsAdapter"]
