from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import pytest

from mimicbot.memory.embeddings import EmbeddingError, Embeddings


def api_response(*vectors):
    return SimpleNamespace(data=[{"embedding": list(v)} for v in vectors])


def test_remote_vectors_and_dimension():
    embed = Embeddings("test/embedder", api_key="k")

    with patch("mimicbot.memory.embeddings.litellm.embedding", return_value=api_response([1, 2], [3, 4])) as call:
        vectors = embed(["a", "b"])

    assert vectors == [[1.0, 2.0], [3.0, 4.0]]
    assert all(isinstance(x, float) for x in vectors[0])
    assert embed.dimension == 2
    assert call.call_args.kwargs == {"model": "test/embedder", "input": ["a", "b"], "api_key": "k"}


def test_empty_input_skips_the_api():
    with patch("mimicbot.memory.embeddings.litellm.embedding") as call:
        assert Embeddings()([]) == []
    call.assert_not_called()


def test_falls_back_to_local_embedder():
    local = MagicMock(return_value=[[0.5, 0.5]])
    embed = Embeddings()

    with patch("mimicbot.memory.embeddings.litellm.embedding", side_effect=RuntimeError("no key")), \
            patch("mimicbot.memory.embeddings.DefaultEmbeddingFunction", return_value=local):
        assert embed(["x"]) == [[0.5, 0.5]]
        embed(["y"])

    # One local embedder instance serves every fallback batch
    assert local.call_count == 2


def test_both_failing_raises():
    with patch("mimicbot.memory.embeddings.litellm.embedding", side_effect=RuntimeError("no key")), \
            patch("mimicbot.memory.embeddings.DefaultEmbeddingFunction", side_effect=RuntimeError("no model")):
        with pytest.raises(EmbeddingError):
            Embeddings()(["x"])


def test_vector_size_must_not_change():
    embed = Embeddings()
    with patch("mimicbot.memory.embeddings.litellm.embedding", return_value=api_response([1, 2, 3])):
        embed(["a"])
    with patch("mimicbot.memory.embeddings.litellm.embedding", return_value=api_response([1, 2])):
        with pytest.raises(EmbeddingError):
            embed(["b"])
