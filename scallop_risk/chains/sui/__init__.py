"""Sui chain access."""
from .client import SuiClient

__all__ = ["SuiClient"]
