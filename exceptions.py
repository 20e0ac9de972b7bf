class LibraryError(Exception):
    """Base exception for library ledger errors."""


class ValidationError(LibraryError, ValueError):
    """Input rejected before any state change (blank field, bad selection, no copies left)."""
