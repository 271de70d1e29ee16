"""Supabase access for the content engine."""

from carekorea.store.client import ContentStore, create_store

__all__ = ["ContentStore", "create_store"]
