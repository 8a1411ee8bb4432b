"""Risk, yield and portfolio metrics for the Scallop lending market on Sui."""

__version__ = "0.1.0"
