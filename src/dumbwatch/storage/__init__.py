"""Storage abstraction for event store backends."""

from .base import EventStoreBase, get_event_store

__all__ = ["EventStoreBase", "get_event_store"]
