"""Budget ledger: quote reconciliation across the master sheet, the quote folder and manual entry."""

__version__ = "0.1.0"
