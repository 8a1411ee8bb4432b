"""Scallop lending protocol on Sui."""
from .adapter import ScallopFetcher

__all__ = ["ScallopFetcher"]
