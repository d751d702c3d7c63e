"""Lead Assignment Engine - route CRM leads to the right owner."""

__version__ = "1.0.0"
