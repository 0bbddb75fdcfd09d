"""Unit tests for failure classification."""

import httpx
import pydantic
import pytest

from twindata.errors import (
    DocumentConflictError,
    DocumentNotFoundError,
    EmbeddingError,
    ErrorKind,
    InvalidInputError,
    SearchIndexError,
    classify_exception,
)
from twindata.models.book import BookMain


def _status_error(status_code: int) -> httpx.HTTPStatusError:
    """Build the error ``raise_for_status`` produces for ``status_code``."""
    request = httpx.Request("GET", "https://files.example.com/photo.jpg")
    response = httpx.Response(status_code, request=request)
    return httpx.HTTPStatusError("request failed", request=request, response=response)


def _validation_error() -> pydantic.ValidationError:
    try:
        BookMain(titulo="")
    except pydantic.ValidationError as error:
        return error
    raise AssertionError("expected BookMain to reject a blank title")


class TestClassifyException:
    """Tests for mapping exceptions onto ErrorKind."""

    @pytest.mark.parametrize(
        ("error", "expected"),
        [
            (DocumentNotFoundError("books", "b1", "t1"), ErrorKind.NOT_FOUND),
            (InvalidInputError("twin id is required"), ErrorKind.INVALID_INPUT),
            (TimeoutError(), ErrorKind.TRANSIENT),
            (ConnectionResetError(), ErrorKind.TRANSIENT),
            (httpx.ConnectError("refused"), ErrorKind.TRANSIENT),
            (DocumentConflictError("books", "b1", "t1"), ErrorKind.PERMANENT),
            (SearchIndexError("bad filter"), ErrorKind.PERMANENT),
            (EmbeddingError("empty"), ErrorKind.PERMANENT),
            (ValueError("boom"), ErrorKind.PERMANENT),
        ],
    )
    def test_classify_exception(self, error: BaseException, expected: ErrorKind) -> None:
        assert classify_exception(error) == expected

    def test_validation_error_is_invalid_input(self) -> None:
        assert classify_exception(_validation_error()) == ErrorKind.INVALID_INPUT

    @pytest.mark.parametrize(
        ("status_code", "expected"),
        [
            (429, ErrorKind.TRANSIENT),
            (503, ErrorKind.TRANSIENT),
            (404, ErrorKind.NOT_FOUND),
            (400, ErrorKind.PERMANENT),
        ],
    )
    def test_http_status_errors(self, status_code: int, expected: ErrorKind) -> None:
        assert classify_exception(_status_error(status_code)) == expected

    def test_not_found_message_names_the_item(self) -> None:
        error = DocumentNotFoundError("books", "b1", "t1")

        assert str(error) == "books: item 'b1' not found for twin 't1'"
