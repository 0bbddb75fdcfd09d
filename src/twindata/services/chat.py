"""Chat-completion client and the AI chapter subdivision built on it."""

import json
import time
from typing import Any, Protocol

import structlog
from openai import AsyncOpenAI

from twindata.errors import TwinDataError
from twindata.models.chapters import ChapterIndex, ChapterSubdivision, DocumentPage
from twindata.services.chapters import build_chapter_content, chapter_page_range, extract_chapter_text
from twindata.services.prompts import build_subdivision_prompt, subchapter_count
from twindata.services.tokens import TokenCounter, count_tokens

MessageContent = str | list[dict[str, Any]]


class ChatModel(Protocol):
    async def complete(self, content: MessageContent) -> str: ...


class OpenAIChatClient:
    """Sends a single user message and returns the text of the first choice."""

    def __init__(
        self,
        client: AsyncOpenAI,
        model: str = "gpt-4o-mini",
        logger: structlog.stdlib.BoundLogger | None = None,
    ) -> None:
        self._client = client
        self._model = model
        self._logger = logger or structlog.get_logger(__name__)

    async def complete(self, content: MessageContent) -> str:
        response = await self._client.chat.completions.create(
            model=self._model,
            messages=[{"role": "user", "content": content}],
        )
        text = response.choices[0].message.content if response.choices else None
        if not text:
            raise TwinDataError("chat model returned an empty response")
        self._logger.debug("chat_completion_received", model=self._model, chars=len(text))
        return text


def strip_code_fences(text: str) -> str:
    """Remove surrounding backticks and a leading ``json`` language tag."""
    cleaned = text.strip().strip("`").strip()
    if cleaned[:4].lower() == "json":
        cleaned = cleaned[4:].strip()
    return cleaned


class ChapterAIExtractor:
    """Asks the chat model to split one chapter into sub-topics."""

    def __init__(
        self,
        chat: ChatModel,
        token_counter: TokenCounter = count_tokens,
        logger: structlog.stdlib.BoundLogger | None = None,
    ) -> None:
        self._chat = chat
        self._count_tokens = token_counter
        self._logger = logger or structlog.get_logger(__name__)

    async def extract_chapter(
        self,
        current: ChapterIndex,
        next_chapter: ChapterIndex | None,
        pages: list[DocumentPage],
    ) -> ChapterSubdivision | None:
        """Subdivide ``current`` into sub-topics.

        Returns:
            The subdivision with the matched chapter text, its token count,
            the model's processing time and the page range, or None when
            anything fails.
        """
        start, end = chapter_page_range(current, next_chapter, pages)
        content = build_chapter_content(pages, start, end)
        if not content.strip():
            self._logger.warning("chapter_without_text", title=current.title, page_from=start, page_to=end)
            return None

        try:
            count = subchapter_count(self._count_tokens(content))
            prompt = build_subdivision_prompt(content, current.title, count)
            matched = extract_chapter_text(content, current.title, next_chapter.title if next_chapter else None)

            started = time.perf_counter()
            response = await self._chat.complete(prompt)
            elapsed = time.perf_counter() - started

            subdivision = ChapterSubdivision.from_envelope(json.loads(strip_code_fences(response)))
        except Exception as error:
            self._logger.warning("chapter_subdivision_failed", title=current.title, error=str(error))
            return None

        self._logger.info(
            "chapter_subdivided", title=current.title, subtopics=len(subdivision.subtemas), seconds=round(elapsed, 2)
        )
        return subdivision.model_copy(
            update={
                "texto_completo": matched,
                "total_tokens": self._count_tokens(matched),
                "time_seconds": round(elapsed),
                "pagina_de": start,
                "pagina_a": end,
            }
        )


__all__ = ["ChapterAIExtractor", "ChatModel", "MessageContent", "OpenAIChatClient", "strip_code_fences"]
