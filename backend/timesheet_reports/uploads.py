from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional
from xml.etree import ElementTree as ET

from fastapi import HTTPException, status

from .schemas import ParsedData, TimeEntryPayload

logger = logging.getLogger(__name__)


def _element_to_value(element: ET.Element) -> Any:
    children = list(element)
    text = (element.text or "").strip()
    if not children and not element.attrib:
        return text
    node: Dict[str, Any] = {}
    if element.attrib:
        node["$"] = dict(element.attrib)
    for child in children:
        value = _element_to_value(child)
        if child.tag in node:
            existing = node[child.tag]
            if isinstance(existing, list):
                existing.append(value)
            else:
                node[child.tag] = [existing, value]
        else:
            node[child.tag] = value
    if text:
        node["_"] = text
    return node


def parse_xml_document(content: bytes | str) -> Dict[str, Any]:
    """Parse an XML export into nested dicts; single children stay unwrapped."""
    try:
        root = ET.fromstring(content)
    except ET.ParseError as exc:
        logger.info("Rejected XML upload: %s", exc)
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Failed to parse XML file") from exc
    return {root.tag: _element_to_value(root)}


def _as_row_list(rows: Any) -> List[Dict[str, Any]]:
    if isinstance(rows, list):
        return [row for row in rows if isinstance(row, dict)]
    if isinstance(rows, dict):
        return [rows]
    return []


def _field(row: Dict[str, Any], name: str, default: str = "") -> str:
    value = row.get(name)
    if value is None or isinstance(value, (dict, list)):
        return default
    return str(value) or default


def transform_xml_rows(parsed: Dict[str, Any]) -> ParsedData:
    container = parsed.get("rows")
    if isinstance(container, dict) and container.get("row"):
        entries = [
            TimeEntryPayload(
                date=_field(row, "date"),
                user=_field(row, "user"),
                client=_field(row, "client"),
                project=_field(row, "project"),
                task=_field(row, "time_field_1307"),
                time_field_1307=_field(row, "time_field_1307"),
                duration=_field(row, "duration", "0"),
                note=_field(row, "note"),
            )
            for row in _as_row_list(container["row"])
        ]
        client: Optional[str] = entries[0].client if entries else None
        return ParsedData(client=client, entries=entries)
    if isinstance(parsed.get("entries"), list):
        return ParsedData.model_validate(parsed)
    return ParsedData(client=None, entries=[])
