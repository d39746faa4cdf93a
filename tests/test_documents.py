from __future__ import annotations

import logging

import pytest

from catalog.documents import (
    Document,
    DocumentChange,
    DocumentStoreError,
    FileSystemDocumentSource,
    InMemoryDocumentSource,
    extract_front_matter,
    is_markdown,
    parse_front_matter,
)
from catalog.items import build_catalog_item


CTHULHU = """---
title: The Call of Cthulhu
authors: [[Lovecraft, Howard Phillips]]
year-published: 1928
catalog-status: published
---
# The Call of Cthulhu

Of such great powers or beings there may be conceivably a survival...
"""


def test_extract_front_matter():
    assert extract_front_matter(CTHULHU).startswith("title: The Call of Cthulhu")
    assert extract_front_matter("no header here") is None
    assert extract_front_matter("---\n---\nbody") == ""


def test_parse_front_matter_and_coerce(schema):
    fields = parse_front_matter(CTHULHU)
    assert fields["year-published"] == 1928
    item = build_catalog_item(fields, "the-call-of-cthulhu.md", schema)
    assert item.get_field("authors") == ("Lovecraft, Howard Phillips",)


def test_malformed_front_matter_yields_empty_fields(caplog):
    text = "---\ntitle: [unclosed\n---\nbody"
    with caplog.at_level(logging.WARNING, logger="catalog.documents"):
        assert parse_front_matter(text, identity="broken.md") == {}
    assert "broken.md" in caplog.text


def test_non_mapping_front_matter_yields_empty_fields():
    assert parse_front_matter("---\n- a\n- b\n---\n") == {}
    assert parse_front_matter("plain body") == {}


def test_is_markdown():
    assert is_markdown("works/a.md")
    assert is_markdown("works/B.MARKDOWN")
    assert not is_markdown("works/cover.png")


def test_file_system_source_lists_markdown_recursively(tmp_path):
    (tmp_path / "b.md").write_text(CTHULHU, encoding="utf-8")
    (tmp_path / "nested").mkdir()
    (tmp_path / "nested" / "a.md").write_text("---\ntitle: Vathek\n---\n", encoding="utf-8")
    (tmp_path / "notes.txt").write_text("ignored", encoding="utf-8")
    (tmp_path / "empty.md").write_text("no header", encoding="utf-8")

    docs = FileSystemDocumentSource(tmp_path).list_documents()
    assert [d.identity for d in docs] == ["b.md", "empty.md", "nested/a.md"]
    assert docs[0].fields["title"] == "The Call of Cthulhu"
    assert docs[1].fields == {}

    flat = FileSystemDocumentSource(tmp_path, recursive=False).list_documents()
    assert [d.identity for d in flat] == ["b.md", "empty.md"]


def test_file_system_source_missing_root(tmp_path):
    source = FileSystemDocumentSource(tmp_path / "missing")
    with pytest.raises(DocumentStoreError):
        source.list_documents()
    with pytest.raises(DocumentStoreError):
        source.subscribe(lambda change: None)


def test_file_system_unsubscribe_is_idempotent(tmp_path):
    unsubscribe = FileSystemDocumentSource(tmp_path).subscribe(lambda change: None)
    unsubscribe()
    unsubscribe()


def test_in_memory_source_emits_changes():
    source = InMemoryDocumentSource([Document("a.md", {"title": "A"})])
    seen = []
    unsubscribe = source.subscribe(seen.append)

    source.put("b.md", {"title": "B"})
    source.put("a.md", {"title": "A2"})
    source.delete("b.md")
    source.delete("missing.md")
    assert seen == [
        DocumentChange("created", "b.md"),
        DocumentChange("modified", "a.md"),
        DocumentChange("deleted", "b.md"),
    ]
    assert [d.fields["title"] for d in source.list_documents()] == ["A2"]

    unsubscribe()
    source.put("c.md", {})
    assert len(seen) == 3
    assert source.subscriber_count == 0


def test_in_memory_source_failure():
    source = InMemoryDocumentSource()
    source.fail_with(OSError("store offline"))
    with pytest.raises(DocumentStoreError, match="store offline"):
        source.list_documents()
    source.fail_with(None)
    assert source.list_documents() == []
    assert source.list_calls == 2
