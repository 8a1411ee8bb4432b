"""Protocol-specific ledger fetchers."""
