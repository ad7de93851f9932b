"""
Boundary-aware document chunker.

Splits extracted document text into ordered chunks sized for embedding.
Supports fixed windows, sentence-first recursive splitting, paragraph
packing and section-aware packing. Every chunk keeps character offsets
into the source text plus an estimated page span.

Dependencies: langchain_text_splitters, re (stdlib), ragbot.models
System role: First stage of ingestion, before embedding and upload
"""

import logging
import re
from collections import deque
from dataclasses import dataclass, field

from langchain_text_splitters import RecursiveCharacterTextSplitter

from ragbot.core.chunking.headers import detect_header
from ragbot.core.chunking.options import ChunkingOptions, ChunkStrategy
from ragbot.core.chunking.summaries import fallback_chunk_summary
from ragbot.core.exceptions import ChunkingError
from ragbot.models.chunk import Chunk

logger = logging.getLogger(__name__)

SENTENCE_TOLERANCE = 100
WORD_TOLERANCE = 50
MIN_PARAGRAPH_CHARS = 50
SEPARATOR = "\n\n"
CONTINUATION_PREFIX = "[Continued from: {header}]"
SENTENCE_SEPARATORS = ["\n\n", "\n", ". ", "? ", "! ", "; ", " ", ""]

_SENTENCE_END = re.compile(r"[.!?](?=\s)")
_PARAGRAPH_BREAK = re.compile(r"\n[ \t]*\n\s*")


@dataclass
class _Unit:
    """A source span that the packer treats as indivisible unless oversized."""

    start: int
    end: int
    text: str
    section: int = 0
    header: str | None = None
    header_level: int | None = None
    opens_section: bool = False


@dataclass
class _Draft:
    parts: list[str] = field(default_factory=list)
    units: list[_Unit] = field(default_factory=list)
    start: int | None = None
    length: int = 0

    def add(self, text: str) -> None:
        self.length += len(text) + (len(SEPARATOR) if self.parts else 0)
        self.parts.append(text)

    def room_for(self, text: str) -> int:
        return self.length + (len(SEPARATOR) if self.parts else 0) + len(text)


def estimate_pages(index: int, total_chunks: int, total_pages: int | None) -> tuple[int, int]:
    """
    Proportional page span for chunk ``index`` of ``total_chunks``.

    Returns:
        tuple[int, int]: (page_start, page_end), both 1 without a page count
    """
    if not total_pages or total_pages < 1 or total_chunks < 1:
        return 1, 1
    page_start = (index * total_pages) // total_chunks + 1
    page_end = min(-(-((index + 1) * total_pages) // total_chunks), total_pages)
    return page_start, max(page_end, page_start)


def _skip_space(text: str, pos: int, limit: int) -> int:
    while pos < limit and text[pos].isspace():
        pos += 1
    return pos


def _strip_span(text: str, start: int, end: int) -> tuple[int, int]:
    start = _skip_space(text, start, end)
    while end > start and text[end - 1].isspace():
        end -= 1
    return start, end


def _find_break(text: str, floor: int, target: int) -> int:
    """
    Cut position in ``(floor, target]``.

    Prefers the last sentence terminator within SENTENCE_TOLERANCE of the
    target, then the last whitespace within WORD_TOLERANCE, then ``target``.
    """
    best = None
    sentence_floor = max(floor, target - SENTENCE_TOLERANCE)
    for match in _SENTENCE_END.finditer(text, sentence_floor, min(target + 1, len(text))):
        if match.end() <= target:
            best = match.end()
    if best is not None and best > floor:
        return best

    word_floor = max(floor, target - WORD_TOLERANCE)
    for pos in range(min(target, len(text) - 1), word_floor, -1):
        if text[pos].isspace():
            return pos
    return target


class Chunker:
    """Cuts text into chunks according to ``ChunkingOptions``."""

    def __init__(self, options: ChunkingOptions | None = None) -> None:
        self.options = options or ChunkingOptions()
        self.options.validate_bounds()

    def chunk(self, text: str, total_pages: int | None = None) -> list[Chunk]:
        """
        Split text into ordered chunks.

        Args:
            text: Full document text
            total_pages: Page count of the source, used for page estimation

        Returns:
            list[Chunk]: Chunks in document order, indices 0..n-1

        Raises:
            ChunkingError: If text is empty
        """
        if not text or not text.strip():
            raise ChunkingError("Cannot chunk empty text", option="text")

        opts = self.options
        start, end = _strip_span(text, 0, len(text))

        if end - start < opts.min_size:
            drafts = [self._single(text, start, end)]
        elif opts.strategy == ChunkStrategy.FIXED:
            drafts = self._chunk_fixed(text, start, end)
        elif opts.strategy == ChunkStrategy.SENTENCE:
            drafts = self._chunk_sentences(text, start, end)
        else:
            with_headers = opts.strategy == ChunkStrategy.SECTION
            if with_headers:
                units = self._section_units(text)
            else:
                units = self._paragraph_units(text, start, end)
            if len(units) <= 1:
                drafts = self._chunk_fixed(text, start, end)
            else:
                drafts = self._pack(text, units, with_headers=with_headers)

        chunks = self._finalize(drafts, total_pages)
        logger.info(
            f"{__name__}:chunk - Created {len(chunks)} chunks "
            f"(strategy={opts.strategy.value}, chars={len(text)})"
        )
        return chunks

    def _single(self, text: str, start: int, end: int) -> dict:
        return self._draft_dict(text[start:end], start, end, 1, text[start:end])

    def _draft_dict(
        self,
        content: str,
        start: int,
        end: int,
        paragraph_count: int,
        lead: str,
        header_level: int | None = None,
        is_header: bool = False,
    ) -> dict:
        if not is_header:
            first_line = lead.strip().split("\n", 1)[0]
            info = detect_header(first_line)
            if info is not None:
                is_header, header_level = True, info.level
        return {
            "content": content,
            "start_offset": start,
            "end_offset": end,
            "paragraph_count": paragraph_count,
            "is_header": is_header,
            "header_level": header_level,
        }

    def _fixed_spans(self, text: str, lo: int, hi: int, overlap: int) -> list[tuple[int, int]]:
        opts = self.options
        spans: list[tuple[int, int]] = []
        start = _skip_space(text, lo, hi)
        while start < hi:
            if hi - start <= opts.max_size:
                spans.append(_strip_span(text, start, hi))
                break

            cut = _find_break(text, start + opts.min_size, start + opts.max_size)
            span = _strip_span(text, start, cut)
            spans.append(span if span[1] > span[0] else (start, cut))

            next_start = max(cut - overlap, start + 1) if overlap else cut
            if overlap:
                space = text.find(" ", next_start, cut)
                if space != -1:
                    next_start = space + 1
            start = _skip_space(text, next_start, hi)
        return spans

    def _chunk_fixed(self, text: str, lo: int, hi: int) -> list[dict]:
        return [
            self._draft_dict(text[s:e], s, e, 1, text[s:e])
            for s, e in self._fixed_spans(text, lo, hi, self.options.overlap)
        ]

    def _paragraph_spans(self, text: str, lo: int, hi: int) -> list[tuple[int, int]]:
        spans = []
        pos = lo
        for match in _PARAGRAPH_BREAK.finditer(text, lo, hi):
            s, e = _strip_span(text, pos, match.start())
            if e > s:
                spans.append((s, e))
            pos = match.end()
        s, e = _strip_span(text, pos, hi)
        if e > s:
            spans.append((s, e))
        return spans

    def _paragraph_units(self, text: str, lo: int, hi: int) -> list[_Unit]:
        return [_Unit(s, e, text[s:e]) for s, e in self._paragraph_spans(text, lo, hi)]

    def _chunk_sentences(self, text: str, lo: int, hi: int) -> list[dict]:
        """Sentence-first recursive splitting with start offsets into ``text``."""
        opts = self.options
        splitter = RecursiveCharacterTextSplitter(
            chunk_size=opts.max_size,
            chunk_overlap=opts.overlap,
            separators=SENTENCE_SEPARATORS,
            keep_separator="end",
            add_start_index=True,
            length_function=len,
        )
        drafts = []
        for document in splitter.create_documents([text[lo:hi]]):
            content = document.page_content
            start = document.metadata.get("start_index", -1)
            if start < 0:
                start = text.find(content, lo) - lo
            start += lo
            paragraphs = sum(1 for part in _PARAGRAPH_BREAK.split(content) if part.strip())
            drafts.append(self._draft_dict(content, start, start + len(content), paragraphs, content))
        return drafts

    def _section_units(self, text: str) -> list[_Unit]:
        """Paragraph units tagged with the section (and header) they belong to."""
        sections: list[tuple[int, int, str | None, int | None]] = []
        sec_start, header, level, has_body = 0, None, None, False
        offset = 0
        for line in text.splitlines(keepends=True):
            line_start = offset
            offset += len(line)
            stripped = line.strip()
            if not stripped:
                continue
            info = detect_header(stripped)
            if info is not None:
                if has_body:
                    sections.append((sec_start, line_start, header, level))
                    sec_start, header, level, has_body = line_start, info.text, info.level, False
                    continue
                if header is None:
                    header, level = info.text, info.level
                    continue
            has_body = True
        sections.append((sec_start, len(text), header, level))

        units: list[_Unit] = []
        for number, (s, e, sec_header, sec_level) in enumerate(sections):
            for i, (ps, pe) in enumerate(self._paragraph_spans(text, s, e)):
                units.append(
                    _Unit(
                        ps,
                        pe,
                        text[ps:pe],
                        section=number,
                        header=sec_header,
                        header_level=sec_level,
                        opens_section=(i == 0 and sec_header is not None),
                    )
                )
        return units

    def _fold_short(self, text: str, units: list[_Unit]) -> list[_Unit]:
        """Merge paragraphs under MIN_PARAGRAPH_CHARS into a neighbour of the same section."""

        def merged(first: _Unit, second: _Unit) -> _Unit:
            return _Unit(
                first.start,
                second.end,
                text[first.start : second.end],
                section=first.section,
                header=first.header,
                header_level=first.header_level,
                opens_section=first.opens_section,
            )

        result: list[_Unit] = []
        pending: _Unit | None = None
        for unit in units:
            if pending is not None:
                if pending.section == unit.section:
                    unit = merged(pending, unit)
                elif result and result[-1].section == pending.section:
                    result[-1] = merged(result[-1], pending)
                else:
                    result.append(pending)
                pending = None
            if len(unit.text) < MIN_PARAGRAPH_CHARS:
                pending = unit
                continue
            result.append(unit)

        if pending is not None:
            if result and result[-1].section == pending.section:
                result[-1] = merged(result[-1], pending)
            else:
                result.append(pending)
        return result

    def _split_oversized(self, text: str, units: list[_Unit]) -> list[_Unit]:
        result: list[_Unit] = []
        for unit in units:
            if len(unit.text) <= self.options.max_size:
                result.append(unit)
                continue
            for i, (s, e) in enumerate(self._fixed_spans(text, unit.start, unit.end, 0)):
                result.append(
                    _Unit(
                        s,
                        e,
                        text[s:e],
                        section=unit.section,
                        header=unit.header,
                        header_level=unit.header_level,
                        opens_section=unit.opens_section and i == 0,
                    )
                )
        return result

    def _pack(
        self,
        text: str,
        units: list[_Unit],
        with_headers: bool = False,
    ) -> list[dict]:
        """
        Greedy packing of units into chunks.

        A chunk closes when it holds at least ``min_size`` characters and the
        next unit would push it past ``max_size`` (or, with headers, when the
        next unit opens a new section). A chunk still below ``min_size`` takes
        a prefix of the next unit instead, so both bounds hold.
        """
        opts = self.options
        units = self._fold_short(text, units)
        queue = deque(self._split_oversized(text, units))

        drafts: list[dict] = []
        current = _Draft()
        previous: _Unit | None = None

        while queue:
            unit = queue.popleft()
            has_body = bool(current.units)
            fits = current.room_for(unit.text) <= opts.max_size
            new_section = with_headers and unit.opens_section

            if has_body and current.length >= opts.min_size and (new_section or not fits):
                drafts.append(self._close(current))
                current = self._open(unit, previous, with_headers)
                fits = current.room_for(unit.text) <= opts.max_size

            if fits:
                self._append(current, unit)
                previous = unit
                continue

            piece, rest = self._take_prefix(text, unit, current)
            self._append(current, piece)
            previous = piece
            if rest is not None:
                queue.appendleft(rest)

        if current.units:
            drafts.append(self._close(current))
        return drafts

    def _open(self, unit: _Unit, previous: _Unit | None, with_headers: bool) -> _Draft:
        """Start a chunk with the continuation prefix and the carried overlap tail."""
        opts = self.options
        draft = _Draft()

        if with_headers and unit.header and not unit.opens_section:
            prefix = CONTINUATION_PREFIX.format(header=unit.header)
            if len(prefix) <= opts.max_size // 2:
                draft.add(prefix)

        same_section = previous is not None and (not with_headers or previous.section == unit.section)
        if opts.overlap and same_section:
            room = opts.max_size - draft.room_for(unit.text) - len(SEPARATOR)
            carry_len = min(opts.overlap, room, len(previous.text))
            if carry_len > 0:
                tail = previous.text[-carry_len:]
                space = tail.find(" ")
                if 0 <= space < len(tail) - 1:
                    tail = tail[space + 1 :]
                draft.add(tail)
                draft.start = previous.end - len(tail)
        return draft

    def _append(self, draft: _Draft, unit: _Unit) -> None:
        if draft.start is None:
            draft.start = unit.start
        draft.add(unit.text)
        draft.units.append(unit)

    def _take_prefix(self, text: str, unit: _Unit, draft: _Draft) -> tuple[_Unit, _Unit | None]:
        """Split ``unit`` so its head fills ``draft`` up to ``max_size``."""
        opts = self.options
        sep = len(SEPARATOR) if draft.parts else 0
        room = max(opts.max_size - draft.length - sep, 1)
        needed = max(opts.min_size - draft.length - sep, 1)
        target = unit.start + room
        floor = unit.start + min(needed, room - 1) if room > 1 else unit.start

        cut = _find_break(text, floor, target)
        head_end = _strip_span(text, unit.start, cut)[1]
        if head_end <= unit.start:
            head_end = cut
        head = _Unit(
            unit.start,
            head_end,
            text[unit.start : head_end],
            section=unit.section,
            header=unit.header,
            header_level=unit.header_level,
            opens_section=unit.opens_section,
        )

        rest_start = _skip_space(text, cut, unit.end)
        if rest_start >= unit.end:
            return head, None
        rest = _Unit(
            rest_start,
            unit.end,
            text[rest_start : unit.end],
            section=unit.section,
            header=unit.header,
            header_level=unit.header_level,
        )
        return head, rest

    def _close(self, draft: _Draft) -> dict:
        first = draft.units[0]
        return self._draft_dict(
            SEPARATOR.join(draft.parts),
            draft.start if draft.start is not None else first.start,
            draft.units[-1].end,
            len(draft.units),
            first.text,
            header_level=first.header_level if first.opens_section else None,
            is_header=first.opens_section,
        )

    def _finalize(self, drafts: list[dict], total_pages: int | None) -> list[Chunk]:
        total = len(drafts)
        chunks = []
        for index, draft in enumerate(drafts):
            page_start, page_end = estimate_pages(index, total, total_pages)
            chunks.append(
                Chunk(
                    index=index,
                    page_start=page_start,
                    page_end=page_end,
                    summary=fallback_chunk_summary(draft["content"]),
                    **draft,
                )
            )
        return chunks
