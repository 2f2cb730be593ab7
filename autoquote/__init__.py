"""AutoQuote — parts quotation workflow for auto repair shops."""

__version__ = "1.0.0"
