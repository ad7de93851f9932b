"""
Exception hierarchy for the retrieval core.

Provides layered exception structure for domain-specific errors.
All exceptions include context for observability and debugging.
Exceptions stay inside components; pipeline entry points convert them
into result models with a status.

Dependencies: None (pure domain layer)
System role: Centralized exception handling across the application
"""

from typing import Any


class RagbotError(Exception):
    """Base exception for all ragbot errors."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        """
        Initialize base exception with message and optional context.

        Args:
            message: Human-readable error message
            details: Optional dictionary of additional context for debugging
        """
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def __str__(self) -> str:
        """Return string representation including details."""
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


class ConfigurationError(RagbotError):
    """Raised when configuration is unusable."""

    pass


class ChunkingError(RagbotError, ValueError):
    """Raised when chunking input or options are invalid."""

    def __init__(
        self,
        message: str,
        option: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """
        Initialize chunking error.

        Args:
            message: Error message
            option: Option name that failed validation
            details: Additional context
        """
        details = details or {}
        if option:
            details["option"] = option
        super().__init__(message, details)


class DocumentProcessingError(RagbotError):
    """Base exception for document processing errors."""

    def __init__(
        self,
        message: str,
        document_id: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """
        Initialize document processing error.

        Args:
            message: Error message
            document_id: ID of the document that failed
            details: Additional context
        """
        details = details or {}
        if document_id:
            details["document_id"] = document_id
        super().__init__(message, details)


class ParsingError(DocumentProcessingError):
    """Raised when a source document cannot be read or parsed."""

    def __init__(
        self,
        message: str,
        file_path: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """
        Initialize parsing error.

        Args:
            message: Error message
            file_path: Path of the document that failed
            details: Additional context
        """
        details = details or {}
        if file_path:
            details["file_path"] = file_path
        self.file_path = file_path
        super().__init__(message, None, details)


class EmbeddingError(DocumentProcessingError):
    """Raised when embedding generation fails."""

    pass


class VectorStoreError(RagbotError):
    """Raised when vector store operations fail."""

    def __init__(
        self,
        message: str,
        operation: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """
        Initialize vector store error.

        Args:
            message: Error message
            operation: Operation that failed (create_index, upsert, query, list)
            details: Additional context
        """
        details = details or {}
        if operation:
            details["operation"] = operation
        self.operation = operation
        super().__init__(message, details)


class IndexCreationError(VectorStoreError):
    """Raised when an index cannot be created; fatal for that document."""

    def __init__(self, index_name: str, details: dict[str, Any] | None = None) -> None:
        """
        Initialize index creation error.

        Args:
            index_name: Name of the index that could not be created
            details: Additional context
        """
        details = details or {}
        details["index_name"] = index_name
        self.index_name = index_name
        super().__init__(f"Failed to create index: {index_name}", "create_index", details)


class RetrievalError(RagbotError):
    """Raised when retrieval operations fail."""

    def __init__(
        self,
        message: str,
        index_name: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """
        Initialize retrieval error.

        Args:
            message: Error message
            index_name: Index being queried when the failure occurred
            details: Additional context
        """
        details = details or {}
        if index_name:
            details["index_name"] = index_name
        super().__init__(message, details)


class GraphError(RagbotError):
    """Raised when the entity graph Lambda reports an error."""

    def __init__(
        self,
        message: str,
        operation: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """
        Initialize graph error.

        Args:
            message: Error message
            operation: Lambda operation that failed
            details: Additional context
        """
        details = details or {}
        if operation:
            details["operation"] = operation
        self.operation = operation
        super().__init__(message, details)
