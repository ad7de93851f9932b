"""
Section detection and metadata filtering for search hits.

Recognises questions about a numbered part of a document ("section 21.5",
"chapter 3", "§ 4.2") and narrows hits by document, page range or
section mention.

Dependencies: pydantic, re (stdlib)
System role: Post-retrieval filtering in the retrieval aggregator
"""

import re
from dataclasses import dataclass

from pydantic import BaseModel, Field, model_validator

from ragbot.models.search import SearchHit

_NUMBER = r"(\d+(?:\.\d+)*)"
_SECTION_PATTERNS = [
    re.compile(rf"\b(?:section|sec|chapter|part|article|paragraph|clause|item)\s+{_NUMBER}", re.IGNORECASE),
    re.compile(rf"\b{_NUMBER}\s+(?:section|chapter|part|article)\b", re.IGNORECASE),
    re.compile(rf"§\s*{_NUMBER}"),
    re.compile(r"^\s*(\d+\.\d+(?:\.\d+)*)\s*$"),
]


@dataclass(frozen=True)
class SectionQuery:
    """A question that targets a numbered section."""

    number: str

    @property
    def variations(self) -> tuple[str, ...]:
        """Spellings of the section reference worth matching in text."""
        return (
            self.number,
            f"section {self.number}",
            self.number.replace(".", "-"),
        )

    def mentioned_in(self, hit: SearchHit) -> bool:
        """True when the hit's metadata or content refers to this section."""
        section_number = str(hit.metadata.get("sectionNumber") or "")
        if section_number == self.number or section_number.startswith(f"{self.number}."):
            return True
        content = hit.content.lower()
        return any(
            needle in content
            for needle in (
                f"section {self.number}",
                f"sec {self.number}",
                f"§{self.number}",
                f"§ {self.number}",
                f"{self.number} ",
            )
        )


def detect_section_query(question: str) -> SectionQuery | None:
    """
    Find a section reference in a question.

    >>> detect_section_query("What does section 21.5 require?").number
    '21.5'
    """
    for pattern in _SECTION_PATTERNS:
        match = pattern.search(question)
        if match:
            return SectionQuery(match.group(1))
    return None


class MetadataFilter(BaseModel):
    """Constraints a hit must satisfy to be kept."""

    document_ids: list[str] | None = Field(
        default=None,
        description="Keep hits whose documentId or filename is listed",
    )
    page_range: tuple[int, int] | None = Field(
        default=None,
        description="Keep hits whose page span overlaps (start, end)",
    )
    section: str | None = Field(
        default=None,
        description="Keep hits that mention this section number",
    )

    @model_validator(mode="after")
    def _ordered_pages(self) -> "MetadataFilter":
        if self.page_range is not None and self.page_range[0] > self.page_range[1]:
            raise ValueError(f"page_range start must not exceed end: {self.page_range}")
        return self

    @property
    def is_empty(self) -> bool:
        return not self.document_ids and self.page_range is None and not self.section

    def matches(self, hit: SearchHit) -> bool:
        if self.document_ids:
            names = {hit.document_id, str(hit.metadata.get("filename") or "")}
            if not names.intersection(self.document_ids):
                return False

        if self.page_range is not None:
            start, end = self.page_range
            page_start = hit.page_start or 0
            page_end = hit.page_end or page_start
            if page_end < start or page_start > end:
                return False

        if self.section and not SectionQuery(self.section).mentioned_in(hit):
            return False
        return True


def filter_hits(hits: list[SearchHit], metadata_filter: MetadataFilter | None) -> list[SearchHit]:
    """Hits satisfying ``metadata_filter``, in their original order."""
    if metadata_filter is None or metadata_filter.is_empty:
        return hits
    return [hit for hit in hits if metadata_filter.matches(hit)]
