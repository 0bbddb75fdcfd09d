"""Locate chapter boundaries in OCR'd document pages.

Pages arrive as lists of text lines. Chapter titles come from a table of
contents and rarely match the body text exactly, so titles are compared after
normalisation and with any leading enumerator ("III.", "3.", "A)") removed.
"""

import re

import structlog

from twindata.models.chapters import ChapterIndex, DocumentPage, ExtractedChapter, ExtractedSubChapter
from twindata.services.tokens import TokenCounter, count_tokens

PAGE_MARKER = "=== PÁGINA {number} ==="

_DROPPED_CHARS = str.maketrans("", "", ".,:;()\"'")
_SPACE_CHARS = str.maketrans({"-": " ", "_": " ", "\t": " "})
_ENUMERATOR_RE = re.compile(r"^(?:[ivxlcdm]+|\d+|[a-z])$")
_MARKER_RE = re.compile(r"^=== PÁGINA \d+ ===$")


def normalize_title(text: str) -> str:
    text = text.translate(_DROPPED_CHARS).translate(_SPACE_CHARS)
    return " ".join(text.split()).lower()


def _without_enumerator(normalized: str) -> str:
    first, _, rest = normalized.partition(" ")
    if rest and _ENUMERATOR_RE.match(first):
        return rest
    return normalized


def is_chapter_title_match(line: str, title: str) -> bool:
    """True when ``line`` is (or contains) the chapter ``title``.

    >>> is_chapter_title_match("III. Results", "Results")
    True
    """
    normalized_line = normalize_title(line or "")
    normalized_title = normalize_title(title or "")
    if not normalized_line or not normalized_title:
        return False
    if normalized_line == normalized_title or normalized_title in normalized_line:
        return True
    return _without_enumerator(normalized_line) == _without_enumerator(normalized_title)


def chapter_page_range(
    current: ChapterIndex, next_chapter: ChapterIndex | None, pages: list[DocumentPage]
) -> tuple[int, int]:
    """Inclusive page range of ``current``.

    An explicit ``page_to`` wins; otherwise the chapter runs up to the page
    before the next chapter, or to the last page of the document.
    """
    start = current.page_from
    if current.page_to is not None:
        end = current.page_to
    elif next_chapter is not None:
        end = next_chapter.page_from - 1
    else:
        end = max((page.page_number for page in pages), default=start)
    return start, max(start, end)


def build_chapter_content(pages: list[DocumentPage], start: int, end: int) -> str:
    blocks: list[str] = []
    for page in sorted(pages, key=lambda page: page.page_number):
        if not start <= page.page_number <= end:
            continue
        lines = [line for line in page.lines if line.strip()]
        blocks.append("\n".join([PAGE_MARKER.format(number=page.page_number), *lines]))
    return "\n\n".join(blocks)


def extract_chapter_text(content: str, title: str, next_title: str | None = None) -> str:
    """Lines from the first one matching ``title`` up to, not including, the next title line.

    Returns an empty string when ``title`` never appears.
    """
    extracted: list[str] = []
    found = False
    for line in content.splitlines():
        stripped = line.strip()
        if not stripped:
            continue
        if not found:
            if not _MARKER_RE.match(stripped) and is_chapter_title_match(stripped, title):
                found = True
                extracted.append(line)
            continue
        if next_title and not _MARKER_RE.match(stripped) and is_chapter_title_match(stripped, next_title):
            break
        extracted.append(line)
    return "\n".join(extracted).strip()


class ChapterExtractor:
    """Splits a paged document into chapters following its table of contents."""

    def __init__(
        self,
        token_counter: TokenCounter = count_tokens,
        logger: structlog.stdlib.BoundLogger | None = None,
    ) -> None:
        self._count_tokens = token_counter
        self._logger = logger or structlog.get_logger(__name__)

    def extract_chapters(
        self, chapters: list[ChapterIndex], twin_id: str, pages: list[DocumentPage]
    ) -> list[ExtractedChapter]:
        """One ``ExtractedChapter`` per table-of-contents entry that has text.

        Chapters listing sub-chapters get one ``ExtractedSubChapter`` for each
        sub-chapter title found in the chapter text; others get a single
        sub-chapter holding the whole chapter.
        """
        extracted: list[ExtractedChapter] = []
        if not chapters or not pages:
            return extracted

        for position, current in enumerate(chapters):
            next_chapter = chapters[position + 1] if position + 1 < len(chapters) else None
            start, end = chapter_page_range(current, next_chapter, pages)
            text = build_chapter_content(pages, start, end)
            if not text:
                self._logger.warning("chapter_without_text", title=current.title, page_from=start, page_to=end)
                continue

            chapter = ExtractedChapter(
                twin_id=twin_id,
                title=current.title,
                text=text,
                page_from=start,
                page_to=end,
                total_tokens=self._count_tokens(text),
            )
            chapter.subchapters.extend(self._subchapters(chapter, current.subchapters))
            extracted.append(chapter)
            self._logger.debug(
                "chapter_extracted",
                title=chapter.title,
                tokens=chapter.total_tokens,
                subchapters=len(chapter.subchapters),
            )

        self._logger.info("chapters_extracted", twin_id=twin_id, count=len(extracted))
        return extracted

    def _subchapters(self, chapter: ExtractedChapter, titles: list[str]) -> list[ExtractedSubChapter]:
        if not titles:
            return [self._subchapter(chapter, chapter.title, chapter.text)]

        found: list[ExtractedSubChapter] = []
        for position, title in enumerate(titles):
            next_title = titles[position + 1] if position + 1 < len(titles) else None
            text = extract_chapter_text(chapter.text, title, next_title)
            if not text:
                self._logger.warning("subchapter_not_found", chapter=chapter.title, subchapter=title)
                continue
            found.append(self._subchapter(chapter, title, text))
        return found

    def _subchapter(self, chapter: ExtractedChapter, title: str, text: str) -> ExtractedSubChapter:
        return ExtractedSubChapter(
            chapter_id=chapter.chapter_id,
            title=title,
            text=text,
            total_tokens=self._count_tokens(text),
            page_from=chapter.page_from,
            page_to=chapter.page_to,
        )


__all__ = [
    "ChapterExtractor",
    "build_chapter_content",
    "chapter_page_range",
    "extract_chapter_text",
    "is_chapter_title_match",
    "normalize_title",
]
