"""TenderVault: sealed-bid tender and bid management API."""

__version__ = "1.0.0"
