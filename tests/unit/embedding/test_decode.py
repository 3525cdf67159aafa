"""Tests for the embedding response decoder."""

from __future__ import annotations

from types import SimpleNamespace

import pytest

from vaultindex.embedding.decode import ResponseShape, classify_response, extract_embedding_vector
from vaultindex.exceptions import InvalidEmbeddingResponseError

VEC = [0.1, 0.2, 0.3]


@pytest.mark.parametrize(
    "response, shape",
    [
        (VEC, ResponseShape.BARE_VECTOR),
        ([{"embedding": VEC}], ResponseShape.RECORD_LIST),
        ({"data": [{"embedding": VEC}]}, ResponseShape.DATA_LIST),
        ({"data": {"embedding": VEC}}, ResponseShape.DATA_RECORD),
        ({"embedding": VEC}, ResponseShape.RECORD),
    ],
)
def test_known_shapes_decode(response, shape):
    assert classify_response(response) is shape
    assert extract_embedding_vector(response) == pytest.approx(VEC)


def test_litellm_style_object():
    response = SimpleNamespace(data=[{"object": "embedding", "index": 0, "embedding": VEC}])
    assert classify_response(response) is ResponseShape.DATA_LIST
    assert extract_embedding_vector(response) == pytest.approx(VEC)


def test_attribute_records_in_data():
    response = SimpleNamespace(data=[SimpleNamespace(embedding=VEC)])
    assert extract_embedding_vector(response) == pytest.approx(VEC)


def test_integers_become_floats():
    assert extract_embedding_vector([1, 2]) == [1.0, 2.0]
    assert all(isinstance(v, float) for v in extract_embedding_vector([1, 2]))


@pytest.mark.parametrize(
    "response",
    [
        None,
        "0.1,0.2",
        [],
        {},
        {"data": []},
        {"data": [{"vector": VEC}]},
        {"embedding": []},
        {"embedding": ["a", "b"]},
        [True, False],
        [{"embedding": None}],
    ],
)
def test_unknown_shapes_rejected(response):
    assert classify_response(response) is ResponseShape.UNKNOWN
    with pytest.raises(InvalidEmbeddingResponseError, match="invalid result"):
        extract_embedding_vector(response)
