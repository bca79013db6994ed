"""
Shared utilities for twofactor.

This package provides:
- Secrets management
- Timestamp normalization
"""
from .secrets import get_secret, get_required_secret, mask_secret
from .timestamps import to_epoch, from_epoch

__all__ = ["get_secret", "get_required_secret", "mask_secret", "to_epoch", "from_epoch"]
