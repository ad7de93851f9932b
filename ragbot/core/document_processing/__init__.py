"""
Document processing: parsing and the ingestion/retrieval pipeline.
"""

from ragbot.core.document_processing.entrypoint import DocumentPipeline
from ragbot.core.document_processing.models import ParsedDocument
from ragbot.core.document_processing.tasks import ParsingTask

__all__ = ["DocumentPipeline", "ParsedDocument", "ParsingTask"]
