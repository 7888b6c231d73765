"""Response body parsing into the generic document shape.

JSON is parsed strictly. In XML mode the body is first tried as JSON (some
endpoints configured as XML actually answer JSON), then parsed as XML and
normalized into the same shape JSON produces:

* the root element's content is the document, the root tag is dropped
* an element without attributes or child elements becomes its text
* attributes become ``@name`` keys, repeated child tags become lists
* text that is a decimal number becomes a float
"""
import json
import re
import xml.etree.ElementTree as ET
from dataclasses import dataclass
from typing import Dict, Set, Union

from .errors import ParseError
from .models import GenericValue


_DECIMAL_RE = re.compile(r"^[+-]?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][+-]?\d+)?$")


@dataclass(frozen=True)
class ParsedDocument:
    """Parsed body plus a flag set when XML mode received JSON"""
    value: GenericValue
    format_mismatch: bool = False


def parse_document(body: Union[bytes, str], xml_mode: bool = False) -> ParsedDocument:
    """Parse a response body, raising ParseError when it is malformed"""
    try:
        value = parse_json(body)
    except ParseError as json_error:
        if not xml_mode:
            raise
        try:
            return ParsedDocument(parse_xml(body))
        except ParseError as xml_error:
            raise ParseError(f"body is neither JSON ({json_error}) nor XML ({xml_error})") from xml_error

    return ParsedDocument(value, format_mismatch=xml_mode)


def parse_json(body: Union[bytes, str]) -> GenericValue:
    """Strict JSON parse: NaN and Infinity literals are rejected"""
    try:
        return json.loads(body, parse_constant=_reject_constant)
    except (ValueError, UnicodeDecodeError) as e:
        raise ParseError(f"malformed JSON: {e}") from e


def parse_xml(body: Union[bytes, str]) -> GenericValue:
    """Parse XML and normalize it into the JSON document shape"""
    try:
        root = ET.fromstring(body)
    except ET.ParseError as e:
        raise ParseError(f"malformed XML: {e}") from e
    return coerce_numbers(_element_to_value(root))


def coerce_numbers(value: GenericValue) -> GenericValue:
    """Replace every decimal-number string in the tree with a float"""
    if isinstance(value, str):
        text = value.strip()
        if _DECIMAL_RE.match(text):
            return float(text)
        return value
    if isinstance(value, list):
        return [coerce_numbers(item) for item in value]
    if isinstance(value, dict):
        return {key: coerce_numbers(item) for key, item in value.items()}
    return value


def _element_to_value(element: ET.Element) -> GenericValue:
    children = list(element)
    text = (element.text or "").strip()

    if not children and not element.attrib:
        return text or None

    result: Dict[str, GenericValue] = {}
    for name, attr_value in element.attrib.items():
        result[f"@{name}"] = attr_value

    listed: Set[str] = set()
    for child in children:
        child_value = _element_to_value(child)
        if child.tag not in result:
            result[child.tag] = child_value
        elif child.tag in listed:
            result[child.tag].append(child_value)
        else:
            result[child.tag] = [result[child.tag], child_value]
            listed.add(child.tag)

    if text:
        result["#text"] = text
    return result


def _reject_constant(name: str):
    raise ValueError(f"invalid constant {name}")
