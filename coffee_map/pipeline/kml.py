"""KML 2.2 document encoding and placemark decoding."""

from __future__ import annotations

import re
import xml.etree.ElementTree as ET
from pathlib import Path
from typing import Iterable

from coffee_map.common.errors import (
    CacheError,
    CreateDirectoriesError,
    FileCreationError,
    WriteEncodingError,
)
from coffee_map.common.fs import ensure_dir
from coffee_map.common.geometry import format_point_coordinates, parse_point_coordinates
from coffee_map.common.models import PlaceRecord

KML_NS = "http://www.opengis.net/kml/2.2"
NS = {"kml": KML_NS}

CUP_STYLE_ID = "icon-1534-0288D1"
NORMAL_STYLE_ID = f"{CUP_STYLE_ID}-normal"
HIGHLIGHT_STYLE_ID = f"{CUP_STYLE_ID}-highlight"
ICON_HREF = "https://www.gstatic.com/mapspro/images/stock/503-wht-blank_maps.png"
ICON_COLOR = "ffd18802"

SEARCH_TERM_ATTR = "search_term"
ID_ATTR = "id"
TYPES_DATA_NAME = "types"

# Control characters XML 1.0 cannot carry, even escaped.
_XML_ILLEGAL_CHARS = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f]")

ET.register_namespace("", KML_NS)


def _q(tag: str) -> str:
    return f"{{{KML_NS}}}{tag}"


def xml_safe(text: str) -> str:
    return _XML_ILLEGAL_CHARS.sub("", text)


def _text_child(parent: ET.Element, tag: str, text: str) -> ET.Element:
    child = ET.SubElement(parent, _q(tag))
    child.text = xml_safe(text)
    return child


def _icon_style(style_id: str, label_scale: float) -> ET.Element:
    style = ET.Element(_q("Style"), {"id": style_id})

    icon_style = ET.SubElement(style, _q("IconStyle"))
    _text_child(icon_style, "color", ICON_COLOR)
    _text_child(icon_style, "colorMode", "normal")
    _text_child(icon_style, "scale", "1.0")
    _text_child(icon_style, "heading", "1.0")
    icon = ET.SubElement(icon_style, _q("Icon"))
    _text_child(icon, "href", ICON_HREF)

    label_style = ET.SubElement(style, _q("LabelStyle"))
    _text_child(label_style, "color", ICON_COLOR)
    _text_child(label_style, "colorMode", "normal")
    _text_child(label_style, "scale", repr(label_scale))
    return style


def build_styles() -> list[ET.Element]:
    """Two point styles plus the StyleMap pairing them under the cup style id."""
    style_map = ET.Element(_q("StyleMap"), {"id": CUP_STYLE_ID})
    for key, style_id in (("normal", NORMAL_STYLE_ID), ("highlight", HIGHLIGHT_STYLE_ID)):
        pair = ET.SubElement(style_map, _q("Pair"))
        _text_child(pair, "key", key)
        _text_child(pair, "styleUrl", f"#{style_id}")
    return [
        _icon_style(NORMAL_STYLE_ID, 0.0),
        _icon_style(HIGHLIGHT_STYLE_ID, 1.1),
        style_map,
    ]


def format_description(record: PlaceRecord) -> str:
    return f"{record.map_uri}\n\n{record.formatted_address}"


def build_placemark(search_term: str, record: PlaceRecord) -> ET.Element:
    placemark = ET.Element(
        _q("Placemark"),
        {SEARCH_TERM_ATTR: xml_safe(search_term), ID_ATTR: xml_safe(record.id)},
    )
    _text_child(placemark, "name", record.display_name)
    _text_child(placemark, "description", format_description(record))
    _text_child(placemark, "styleUrl", f"#{CUP_STYLE_ID}")

    extended = ET.SubElement(placemark, _q("ExtendedData"))
    data = ET.SubElement(extended, _q("Data"), {"name": TYPES_DATA_NAME})
    _text_child(data, "value", ",".join(sorted(record.categories)))

    point = ET.SubElement(placemark, _q("Point"))
    _text_child(point, "coordinates", format_point_coordinates(record.location))
    return placemark


def build_document(title: str, features: Iterable[tuple[str, PlaceRecord]]) -> ET.ElementTree:
    root = ET.Element(_q("kml"))
    document = ET.SubElement(root, _q("Document"))
    _text_child(document, "name", title)
    document.extend(build_styles())
    for search_term, record in features:
        document.append(build_placemark(search_term, record))
    return ET.ElementTree(root)


def write_kml_document(path: Path, title: str, features: Iterable[tuple[str, PlaceRecord]]) -> Path:
    tree = build_document(title, features)
    try:
        ensure_dir(path.parent)
    except OSError as exc:
        raise CreateDirectoriesError(f"Cannot create directory {path.parent}: {exc}") from exc
    try:
        handle = path.open("wb")
    except OSError as exc:
        raise FileCreationError(f"Cannot create {path}: {exc}") from exc
    with handle:
        try:
            tree.write(handle, encoding="utf-8", xml_declaration=True)
        except (OSError, ValueError, TypeError) as exc:
            raise WriteEncodingError(f"Cannot write KML document {path}: {exc}") from exc
    return path


def read_kml_placemarks(path: Path) -> list[ET.Element]:
    """Return every Placemark in a document; raises ET.ParseError / OSError as-is."""
    root = ET.parse(path).getroot()
    return list(root.iter(_q("Placemark")))


def _child_text(element: ET.Element, path: str) -> str | None:
    child = element.find(path, NS)
    if child is None:
        return None
    return child.text or ""


def placemark_to_record(element: ET.Element) -> PlaceRecord:
    place_id = element.get(ID_ATTR)
    name = _child_text(element, "kml:name")
    description = _child_text(element, "kml:description")
    location = parse_point_coordinates(_child_text(element, "kml:Point/kml:coordinates"))
    if not place_id or name is None or description is None or location is None:
        raise CacheError(f"Cached placemark {place_id or '<no id>'} is missing place data")

    map_uri, _sep, formatted_address = description.partition("\n\n")
    types_text = _child_text(element, f"kml:ExtendedData/kml:Data[@name='{TYPES_DATA_NAME}']/kml:value")
    categories = frozenset(t for t in (types_text or "").split(",") if t)

    return PlaceRecord(
        id=place_id,
        display_name=name,
        formatted_address=formatted_address,
        map_uri=map_uri,
        location=location,
        categories=categories,
    )
