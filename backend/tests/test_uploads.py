from __future__ import annotations

import pytest
from fastapi import HTTPException

from timesheet_reports.schemas import ParsedData, TimeEntryPayload
from timesheet_reports.state import UploadStore
from timesheet_reports.uploads import parse_xml_document, transform_xml_rows

EXPORT = b"""<?xml version="1.0" encoding="UTF-8"?>
<rows>
  <row>
    <date>2025-07-01</date>
    <user>Alice</user>
    <client>Acme</client>
    <project>Website</project>
    <time_field_1307>#42 Landing page</time_field_1307>
    <duration>1:30</duration>
    <note>Hero section</note>
  </row>
  <row>
    <date>2025-07-02</date>
    <user>Bob</user>
    <client>Acme</client>
    <project>Website</project>
    <time_field_1307></time_field_1307>
    <duration>0:45</duration>
    <note></note>
  </row>
</rows>
"""


def test_parse_keeps_single_children_unwrapped() -> None:
    parsed = parse_xml_document(b"<rows><row><date>2025-07-01</date></row></rows>")
    assert parsed == {"rows": {"row": {"date": "2025-07-01"}}}


def test_parse_collects_repeated_children_and_attributes() -> None:
    parsed = parse_xml_document(b'<rows kind="export"><row><a>1</a></row><row><a>2</a></row></rows>')
    assert parsed["rows"]["$"] == {"kind": "export"}
    assert parsed["rows"]["row"] == [{"a": "1"}, {"a": "2"}]


def test_invalid_xml_raises_bad_request() -> None:
    with pytest.raises(HTTPException) as info:
        parse_xml_document(b"<rows><row></rows>")
    assert info.value.status_code == 400
    assert info.value.detail == "Failed to parse XML file"


def test_transform_rows_into_entries() -> None:
    data = transform_xml_rows(parse_xml_document(EXPORT))
    assert data.client == "Acme"
    assert [entry.user for entry in data.entries] == ["Alice", "Bob"]
    first = data.entries[0].to_entry()
    assert first.task == "#42 Landing page"
    assert first.note == "Hero section"
    second = data.entries[1].to_entry()
    assert second.task is None
    assert second.duration == "0:45"


def test_transform_single_row_document() -> None:
    data = transform_xml_rows(parse_xml_document(b"<rows><row><user>Solo</user><duration>2:00</duration></row></rows>"))
    assert len(data.entries) == 1
    assert data.entries[0].user == "Solo"


def test_transform_passes_structured_payload_through() -> None:
    data = transform_xml_rows({"client": "Acme", "entries": [{"date": "2025-07-01", "user": "A", "duration": "1:00"}]})
    assert data.client == "Acme"
    assert data.entries[0].user == "A"


def test_transform_unknown_shape_is_empty() -> None:
    assert transform_xml_rows({"something": "else"}).entries == []


def test_upload_store_evicts_oldest() -> None:
    store = UploadStore(capacity=2)
    first = store.put(ParsedData(client="one"))
    second = store.put(ParsedData(client="two"))
    store.get(first)
    third = store.put(ParsedData(client="three"))
    assert len(store) == 2
    assert store.get(second) is None
    assert store.get(first).client == "one"
    assert store.get(third).client == "three"


def test_upload_store_get_and_discard() -> None:
    store = UploadStore(capacity=4)
    upload_id = store.put(ParsedData(entries=[TimeEntryPayload(date="2025-07-01", user="A", duration="1:00")]))
    assert store.get(upload_id).entries[0].user == "A"
    assert store.discard(upload_id) is True
    assert store.get(upload_id) is None
    assert store.discard(upload_id) is False
