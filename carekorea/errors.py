"""Exceptions raised by the content engine."""


class GenerationError(Exception):
    """Content could not be generated or parsed for a keyword."""


class StoreError(Exception):
    """A Supabase read or write failed."""
