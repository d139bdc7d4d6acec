"""Tests for VectorMemory (ChromaDB-backed long-term memory)."""

import string
import uuid

import chromadb
import pytest

from mimicbot.memory.vector_memory import VectorMemory
from mimicbot.providers.base import MemoryEntry, VectorStore


def letter_embedding(texts: list[str]) -> list[list[float]]:
    """Letter-frequency vectors: similar spelling, similar vector."""
    vectors = []
    for text in texts:
        lowered = text.lower()
        vector = [float(lowered.count(c)) for c in string.ascii_lowercase]
        vector.append(1.0)  # never all zero
        vectors.append(vector)
    return vectors


# ── Fixtures ───────────────────────────────────────────────


@pytest.fixture
def chroma_client():
    return chromadb.Client()


@pytest.fixture
def vm(chroma_client):
    """VectorMemory on a fresh collection; chromadb.Client() may share in-process state."""
    return VectorMemory(
        client=chroma_client,
        collection=f"test_{uuid.uuid4().hex[:8]}",
        embedding_fn=letter_embedding,
    )


def entry(mid, text, kind="self", name=None):
    return MemoryEntry(id=mid, text=text, time="2026-10-19T12:00:00+00:00", target_kind=kind, target_name=name)


# ── Add / query ────────────────────────────────────────────


def test_empty_store_returns_nothing(vm):
    assert vm.query("anything") == []
    assert vm.count() == 0


def test_add_and_query_round_trip(vm):
    vm.add([entry("a1", "alice loves green tea", "user", "alice")])

    (found,) = vm.query("green tea")

    assert found.id == "a1"
    assert found.text == "alice loves green tea"
    assert found.target_kind == "user"
    assert found.target_name == "alice"
    assert found.time == "2026-10-19T12:00:00+00:00"
    assert found.distance is not None


def test_self_memory_has_no_name(vm):
    vm.add([entry("s1", "i hate mondays")])

    (found,) = vm.query("mondays")

    assert found.target_kind == "self"
    assert found.target_name is None


def test_upsert_replaces_same_id(vm):
    vm.add([entry("x", "first version")])
    vm.add([entry("x", "second version")])

    assert vm.count() == 1
    assert vm.query("version")[0].text == "second version"


def test_limit_is_clamped(vm):
    vm.add([entry("a", "apples"), entry("b", "bananas")])

    assert len(vm.query("fruit", limit=10)) == 2
    assert len(vm.query("fruit", limit=1)) == 1
    assert vm.query("fruit", limit=0) == []


def test_filters(vm):
    vm.add([
        entry("u1", "likes cats", "user", "alice"),
        entry("u2", "likes dogs", "user", "bob"),
        entry("g1", "server loves cats", "guild", "test server"),
        entry("s1", "i like cats too"),
    ])

    assert {e.id for e in vm.query("cats", {"target_kind": "user"})} == {"u1", "u2"}
    assert [e.id for e in vm.query("cats", {"target_kind": "user", "target_name": "bob"})] == ["u2"]
    assert [e.id for e in vm.query("cats", {"target_kind": "guild", "target_name": None})] == ["g1"]


def test_unknown_kind_rejected(vm):
    with pytest.raises(ValueError):
        vm.add([entry("z", "nope", "planet")])
    assert vm.count() == 0


def test_closest_match_first(vm):
    vm.add([
        entry("m1", "zzzz qqqq"),
        entry("m2", "banana bread"),
    ])

    assert vm.query("bananas")[0].id == "m2"


# ── Async capability ───────────────────────────────────────


@pytest.mark.asyncio
async def test_async_insert_and_search(vm):
    assert isinstance(vm, VectorStore)

    await vm.insert([entry("a", "pizza night", "guild", "test server")])
    found = await vm.search("pizza", {"target_kind": "guild"}, 4)

    assert [e.id for e in found] == ["a"]
