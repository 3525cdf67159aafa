"""Decode embedding API responses into a plain vector.

Each known response shape is an explicit case; anything else is rejected
rather than guessed at.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from enum import Enum
from typing import Any

from vaultindex.exceptions import InvalidEmbeddingResponseError


class ResponseShape(Enum):
    BARE_VECTOR = "bare_vector"            # [0.1, 0.2, ...]
    RECORD_LIST = "record_list"            # [{"embedding": [...]}, ...]
    DATA_LIST = "data_list"                # {"data": [{"embedding": [...]}]} (OpenAI / LiteLLM)
    DATA_RECORD = "data_record"            # {"data": {"embedding": [...]}}
    RECORD = "record"                      # {"embedding": [...]}
    UNKNOWN = "unknown"


def _field(obj: Any, name: str) -> Any:
    """Read *name* from a mapping key or an attribute (LiteLLM response objects)."""
    if isinstance(obj, Mapping):
        return obj.get(name)
    return getattr(obj, name, None)


def _is_number_list(value: Any) -> bool:
    return (
        isinstance(value, Sequence)
        and not isinstance(value, (str, bytes))
        and len(value) > 0
        and all(isinstance(v, (int, float)) and not isinstance(v, bool) for v in value)
    )


def _is_sequence(value: Any) -> bool:
    return isinstance(value, Sequence) and not isinstance(value, (str, bytes))


def classify_response(response: Any) -> ResponseShape:
    """Return the ResponseShape tag for *response*."""
    if _is_sequence(response) and len(response) > 0:
        if _is_number_list(response):
            return ResponseShape.BARE_VECTOR
        if _is_number_list(_field(response[0], "embedding")):
            return ResponseShape.RECORD_LIST
        return ResponseShape.UNKNOWN

    if response is None or isinstance(response, (str, bytes)):
        return ResponseShape.UNKNOWN

    data = _field(response, "data")
    if _is_sequence(data) and len(data) > 0 and _is_number_list(_field(data[0], "embedding")):
        return ResponseShape.DATA_LIST
    if data is not None and not _is_sequence(data) and _is_number_list(_field(data, "embedding")):
        return ResponseShape.DATA_RECORD
    if _is_number_list(_field(response, "embedding")):
        return ResponseShape.RECORD
    return ResponseShape.UNKNOWN


def extract_embedding_vector(response: Any) -> list[float]:
    """Return the embedding vector carried by *response*.

    Raises:
        InvalidEmbeddingResponseError: If *response* matches no known shape.
    """
    shape = classify_response(response)
    if shape is ResponseShape.BARE_VECTOR:
        vector = response
    elif shape is ResponseShape.RECORD_LIST:
        vector = _field(response[0], "embedding")
    elif shape is ResponseShape.DATA_LIST:
        vector = _field(_field(response, "data")[0], "embedding")
    elif shape is ResponseShape.DATA_RECORD:
        vector = _field(_field(response, "data"), "embedding")
    elif shape is ResponseShape.RECORD:
        vector = _field(response, "embedding")
    else:
        raise InvalidEmbeddingResponseError("Embedding model returned an invalid result")
    return [float(v) for v in vector]
