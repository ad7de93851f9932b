"""
Agent tools.

Binds the document pipeline to langchain tools an agent can call:
cross-index question answering and per-document actions (process,
query, summarize). Tools always return JSON-serialisable dicts; failures
come back as a ``failed`` status, never as exceptions.

Dependencies: langchain_core.tools, ragbot.core.document_processing
System role: Tool surface for the agent runtime
"""

import logging
from typing import TYPE_CHECKING, Literal

from langchain_core.tools import tool

from ragbot.core.metadata_filter import MetadataFilter

if TYPE_CHECKING:
    from ragbot.core.document_processing.entrypoint import DocumentPipeline

logger = logging.getLogger(__name__)

DocumentAction = Literal["process", "query", "summarize"]


def create_query_tool(pipeline: "DocumentPipeline"):
    """
    Create a cross-index search tool bound to a DocumentPipeline.

    Args:
        pipeline: Pipeline used for retrieval

    Returns:
        Callable: Async langchain tool
    """

    @tool
    async def search_knowledge_base(
        question: str,
        documents: list[str] | None = None,
        section: str | None = None,
    ) -> dict:
        """Search all processed documents for content relevant to a question.

        Returns ranked chunks, a per-document summary, citations and a
        context string with page references. status is
        'success_with_chunks', 'success_empty' (nothing relevant) or 'failed'.

        Args:
            question: The user's question
            documents: Only search these document ids or filenames
            section: Only keep chunks that mention this section number, e.g. '4.2'
        """
        logger.info(f"{__name__}:search_knowledge_base - START question_len={len(question)}")
        metadata_filter = None
        if documents or section:
            metadata_filter = MetadataFilter(document_ids=documents or None, section=section)
        result = await pipeline.answer(question, metadata_filter=metadata_filter)
        logger.info(
            f"{__name__}:search_knowledge_base - END status={result.status}, "
            f"chunks={result.total_similar_chunks}"
        )
        return result.model_dump(mode="json")

    return search_knowledge_base


def create_document_tool(pipeline: "DocumentPipeline"):
    """
    Create a per-document tool bound to a DocumentPipeline.

    Args:
        pipeline: Pipeline used for ingestion and follow-up actions

    Returns:
        Callable: Async langchain tool
    """

    @tool
    async def pdf_document(
        filepath: str,
        action: DocumentAction = "process",
        query: str | None = None,
    ) -> dict:
        """Process a document, or query or summarize a document processed earlier.

        Args:
            filepath: Path to the uploaded document
            action: 'process' to ingest, 'query' to ask a question, 'summarize' for a summary
            query: Question to ask; required when action is 'query'
        """
        logger.info(f"{__name__}:pdf_document - action={action}, filepath={filepath}")

        if action == "process":
            result = await pipeline.process(filepath, temporary=True)
            return result.model_dump(mode="json", exclude={"chunks": {"__all__": {"embedding"}}})
        if action == "query":
            if not query:
                return {
                    "status": "failed",
                    "success": False,
                    "message": "A query is required for the 'query' action",
                }
            result = await pipeline.query(filepath, query)
            return result.model_dump(mode="json")
        if action == "summarize":
            result = await pipeline.summarize(filepath)
            return result.model_dump(mode="json")

        return {"status": "failed", "success": False, "message": f"Unknown action: {action}"}

    return pdf_document
