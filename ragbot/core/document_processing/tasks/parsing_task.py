"""
Document parsing task using LangChain PyPDFLoader.

Converts PDF and plain-text documents into a single text body plus a
page count for page estimation.

Dependencies: langchain_community.document_loaders
System role: First stage of document ingestion pipeline
"""

import logging
import math
from pathlib import Path

from langchain_community.document_loaders import PyPDFLoader

from ragbot.core.document_processing.models import ParsedDocument
from ragbot.core.exceptions import ParsingError

logger = logging.getLogger(__name__)

TEXT_SUFFIXES = {".txt", ".md", ".markdown"}
CHARS_PER_TEXT_PAGE = 3000


class ParsingTask:
    """Parse PDF and text documents into ParsedDocument."""

    def parse(self, file_path: str) -> ParsedDocument:
        """
        Parse a document.

        Args:
            file_path: Path to a .pdf, .txt or .md document

        Returns:
            ParsedDocument: Text, page count and loader metadata

        Raises:
            ParsingError: When the file is missing, unsupported or has no text
        """
        path = Path(file_path)
        if not path.exists():
            raise ParsingError(f"File not found: {file_path}", file_path)

        suffix = path.suffix.lower()
        if suffix == ".pdf":
            parsed = self._parse_pdf(file_path)
        elif suffix in TEXT_SUFFIXES:
            parsed = self._parse_text(path)
        else:
            raise ParsingError(
                f"Unsupported file format: {path.suffix}. Supported: .pdf, .txt, .md",
                file_path,
            )

        if not parsed.text.strip():
            raise ParsingError("Document contains no extractable text", file_path)

        logger.info(
            f"{__name__}:parse - Parsed {path.name}: {parsed.pages} pages, {len(parsed.text)} chars"
        )
        return parsed

    def _parse_pdf(self, file_path: str) -> ParsedDocument:
        try:
            documents = PyPDFLoader(file_path).load()
        except Exception as e:
            raise ParsingError(f"Failed to parse PDF: {e}", file_path) from e

        if not documents:
            raise ParsingError("PDF document contains no pages", file_path)

        text = "\n\n".join(doc.page_content.strip() for doc in documents if doc.page_content.strip())
        metadata = {
            key: value
            for key, value in documents[0].metadata.items()
            if key not in {"page", "page_label"}
        }
        return ParsedDocument(text=text, pages=len(documents), metadata=metadata)

    def _parse_text(self, path: Path) -> ParsedDocument:
        try:
            text = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise ParsingError(f"Failed to read text file: {e}", str(path)) from e

        pages = max(1, math.ceil(len(text) / CHARS_PER_TEXT_PAGE))
        return ParsedDocument(text=text, pages=pages, metadata={"source": str(path)})
