"""
Utility modules for PMS Sync
"""

from .logging import (
    configure_logging,
    get_logger,
    bind_correlation_id,
    current_correlation_id,
    correlation_scope,
    mask_pii,
    log_performance,
    sanitize_url,
)

__all__ = [
    "configure_logging",
    "get_logger",
    "bind_correlation_id",
    "current_correlation_id",
    "correlation_scope",
    "mask_pii",
    "log_performance",
    "sanitize_url",
]
