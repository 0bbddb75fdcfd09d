"""Exception hierarchy and failure classification.

Stores and clients raise these exceptions; service methods catch them at the
public boundary and turn them into ``Result`` values via ``classify_exception``.
"""

import asyncio
from enum import StrEnum

import httpx
import openai
import pydantic
from sqlalchemy import exc as sa_exc


class ErrorKind(StrEnum):
    NOT_FOUND = "not_found"
    TRANSIENT = "transient"
    PERMANENT = "permanent"
    INVALID_INPUT = "invalid_input"


class TwinDataError(Exception):
    """Base class for errors raised inside twindata components."""


class DocumentNotFoundError(TwinDataError):
    def __init__(self, container: str, item_id: str, twin_id: str) -> None:
        super().__init__(f"{container}: item '{item_id}' not found for twin '{twin_id}'")
        self.container = container
        self.item_id = item_id
        self.twin_id = twin_id


class DocumentConflictError(TwinDataError):
    def __init__(self, container: str, item_id: str, twin_id: str) -> None:
        super().__init__(f"{container}: item '{item_id}' already exists for twin '{twin_id}'")
        self.container = container
        self.item_id = item_id
        self.twin_id = twin_id


class InvalidInputError(TwinDataError):
    """A required identifier or field was missing before any call was made."""


class SearchIndexError(TwinDataError):
    """The search collection rejected an operation."""


class EmbeddingError(TwinDataError):
    """The embedding model returned no usable vector."""


_TRANSIENT_STATUS_CODES = frozenset({408, 429, 500, 502, 503, 504})

_TRANSIENT_TYPES: tuple[type[BaseException], ...] = (
    asyncio.TimeoutError,
    TimeoutError,
    ConnectionError,
    httpx.TimeoutException,
    httpx.TransportError,
    openai.APIConnectionError,
    openai.RateLimitError,
    openai.InternalServerError,
    sa_exc.OperationalError,
    sa_exc.TimeoutError,
    sa_exc.DisconnectionError,
)


def classify_exception(error: BaseException) -> ErrorKind:
    """Map an exception onto the coarse error taxonomy exposed to callers."""
    if isinstance(error, DocumentNotFoundError):
        return ErrorKind.NOT_FOUND
    if isinstance(error, (InvalidInputError, pydantic.ValidationError)):
        return ErrorKind.INVALID_INPUT
    if isinstance(error, httpx.HTTPStatusError):
        if error.response.status_code in _TRANSIENT_STATUS_CODES:
            return ErrorKind.TRANSIENT
        if error.response.status_code == 404:
            return ErrorKind.NOT_FOUND
        return ErrorKind.PERMANENT
    if isinstance(error, _TRANSIENT_TYPES):
        return ErrorKind.TRANSIENT
    return ErrorKind.PERMANENT
