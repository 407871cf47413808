"""Tests for continuum/memory.py"""
from __future__ import annotations

from continuum.memory import MemoryBook, MemoryStub, build_context


class TestMemoryBook:
    def test_add_and_pairs(self):
        book = MemoryBook()
        book.add("project", "continuum")
        book.add("mood", "calm", importance=90)
        assert book.pairs() == [("project", "continuum"), ("mood", "calm")]
        assert book.all()[1].importance == 90

    def test_remove(self):
        book = MemoryBook()
        stub = book.add("k", "v")
        v = book.version
        assert book.remove(stub.id) is True
        assert book.version == v + 1
        assert book.remove(stub.id) is False
        assert book.version == v + 1

    def test_replace_all(self):
        book = MemoryBook([MemoryStub("a", "1")])
        book.replace_all([MemoryStub("b", "2")])
        assert book.pairs() == [("b", "2")]


def test_stub_dict_round_trip():
    stub = MemoryStub("k", "v", importance=10, last_accessed=123)
    data = stub.to_dict()
    assert data["lastAccessed"] == 123
    assert MemoryStub.from_dict(data) == stub


def test_context_without_memories():
    context = build_context([], at=0)
    assert "Available Memories: \n" in context
    assert context.endswith("Instruction: Respond to the prompt.")
