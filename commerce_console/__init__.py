"""Commerce Console - category taxonomy and refund reconciliation backend."""

__version__ = "1.0.0"
