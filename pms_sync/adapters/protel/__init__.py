"""
Protel PMS Adapter

Legacy on-premise PMS reachable through a SOAP/XML web service.
"""

from .connector import ProtelAdapter, PROTEL_NAMESPACE

__all__ = ["ProtelAdapter", "PROTEL_NAMESPACE"]
