"""Entity graph boundary: Lambda-backed knowledge graph enrichment."""

from ragbot.boundary.graph.lambda_client import GraphEnrichmentClient

__all__ = ["GraphEnrichmentClient"]
