"""Token counting for chapter text.

Uses tiktoken's ``cl100k_base`` encoding, the one shared by the embedding and
chat models configured by default.
"""

from functools import lru_cache
from typing import Callable

import tiktoken

TokenCounter = Callable[[str], int]

DEFAULT_ENCODING = "cl100k_base"


@lru_cache(maxsize=4)
def _encoder(name: str) -> tiktoken.Encoding:
    return tiktoken.get_encoding(name)


def count_tokens(text: str, encoding_name: str = DEFAULT_ENCODING) -> int:
    if not text:
        return 0
    return len(_encoder(encoding_name).encode(text, disallowed_special=()))


__all__ = ["DEFAULT_ENCODING", "TokenCounter", "count_tokens"]
