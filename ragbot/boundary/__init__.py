"""External system adapters: vector stores, embedding providers and the entity graph."""
