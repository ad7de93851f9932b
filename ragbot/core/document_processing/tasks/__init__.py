"""Document processing tasks."""

from ragbot.core.document_processing.tasks.parsing_task import ParsingTask

__all__ = ["ParsingTask"]
