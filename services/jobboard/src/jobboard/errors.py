from __future__ import annotations


class InvalidInputError(ValueError):
    """Caller supplied data that cannot be turned into a valid statement or record."""
