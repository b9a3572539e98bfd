"""Entity store package."""

from flourish.store.entity_store import (
    COLLECTION_MODELS,
    Collection,
    EntityStore,
    Observer,
)

__all__ = ["COLLECTION_MODELS", "Collection", "EntityStore", "Observer"]
