"""
ragbot: document chunking and semantic retrieval core for a RAG chatbot.

Splits documents into citation-friendly chunks, embeds them under rate
limits, stores them in per-document vector indices and assembles
citation-grounded context bundles for an agent runtime.
"""

__version__ = "0.1.0"
