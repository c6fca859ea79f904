from __future__ import annotations

from replication_checker.domain.model import Creator, ItemType, RecordField
from replication_checker.domain.references import (
    merge_reference,
    parse_bibtex,
    parse_bibtex_entries,
)

BOOK = """
@incollection{doe2020,
  title = {A {Chapter} on Replication},
  author = {Doe, Jane and van der Berg, Piet and others},
  booktitle = {Handbook of Open Science},
  publisher = {Open Press},
  address = {Berlin},
  year = {2020},
  isbn = {978-3-16-148410-0},
  pages = {1--20}
}
"""


def test_parse_bibtex_maps_fields_and_type() -> None:
    reference = parse_bibtex(BOOK)

    assert reference is not None
    assert reference.item_type is ItemType.BOOK_SECTION
    assert reference.fields[RecordField.TITLE] == "A Chapter on Replication"
    assert reference.fields[RecordField.BOOK_TITLE] == "Handbook of Open Science"
    assert reference.fields[RecordField.PLACE] == "Berlin"
    assert reference.fields[RecordField.DATE] == "2020"
    assert reference.creators == (
        Creator(first_name="Jane", last_name="Doe"),
        Creator(first_name="Piet", last_name="van der Berg"),
    )


def test_parse_bibtex_tolerates_garbage() -> None:
    assert parse_bibtex(None) is None
    assert parse_bibtex("   ") is None
    assert parse_bibtex("this is not bibtex") is None


def test_parse_bibtex_entries_keeps_document_order() -> None:
    text = """
    @article{a, title={First}, journal={J}, year={2001}, doi={10.1000/a}}
    @misc{b, title={Second}, url={https://osf.io/b}}
    """

    references = parse_bibtex_entries(text)

    assert [ref.fields[RecordField.TITLE] for ref in references] == ["First", "Second"]
    assert [ref.item_type for ref in references] == [ItemType.JOURNAL_ARTICLE, ItemType.DOCUMENT]
    assert references[0].fields[RecordField.DOI] == "10.1000/a"
    assert references[0].fields[RecordField.PUBLICATION_TITLE] == "J"


def test_merge_reference_only_fills_gaps() -> None:
    fields = {str(RecordField.TITLE): "Structured title", str(RecordField.DATE): ""}
    creators: list[Creator] = []

    item_type = merge_reference(ItemType.JOURNAL_ARTICLE, fields, creators, parse_bibtex(BOOK))

    assert item_type is ItemType.BOOK_SECTION
    assert fields[RecordField.TITLE] == "Structured title"
    assert fields[RecordField.DATE] == "2020"
    assert fields[RecordField.PUBLISHER] == "Open Press"
    assert len(creators) == 2


def test_merge_reference_keeps_type_for_generic_documents() -> None:
    reference = parse_bibtex("@misc{x, title={Generic}}")
    creators = [Creator(last_name="Kept")]

    item_type = merge_reference(ItemType.DOCUMENT, {}, creators, reference)

    assert item_type is ItemType.DOCUMENT
    assert creators == [Creator(last_name="Kept")]
    assert merge_reference(ItemType.BOOK, {}, [], None) is ItemType.BOOK
