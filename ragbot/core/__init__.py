"""Core retrieval logic: chunking, embedding, indexing, aggregation and context."""
