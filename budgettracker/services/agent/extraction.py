"""
Structured-output extraction from free-form model text.

The model is asked for JSON but may wrap it in a ```json fence, surround it
with prose, or get field values slightly wrong. `extract` finds the payload,
then checks it against an `ExtractionSchema`. Enum values are forgiving
(case-insensitive, unknown values fall back to a default); everything else is
all-or-nothing.
"""
from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Optional, Tuple, Union

logger = logging.getLogger(__name__)

_FENCED_JSON = re.compile(r"```json\s*([\s\S]*?)\s*```", re.IGNORECASE)

_FIELD_TYPES = ("string", "number", "list", "object")


@dataclass(frozen=True)
class FieldSpec:
    name: str
    type: str = "string"
    required: bool = True
    enum_values: Tuple[str, ...] = ()
    enum_default: Optional[str] = None
    item_schema: Tuple["FieldSpec", ...] = ()
    max_items: Optional[int] = None

    def __post_init__(self) -> None:
        if self.type not in _FIELD_TYPES:
            raise ValueError(f"Unsupported field type {self.type!r} for {self.name}")
        if self.enum_values and self.enum_default not in self.enum_values:
            raise ValueError(f"Enum default for {self.name} must be one of {self.enum_values}")


@dataclass(frozen=True)
class ExtractionSchema:
    """Expected top-level object.

    `root_key` names the list field that a bare top-level JSON array is
    treated as, so `[...]` is read as `{root_key: [...]}`.
    """

    fields: Tuple[FieldSpec, ...]
    root_key: Optional[str] = None


@dataclass(frozen=True)
class ParsedResult:
    data: Dict[str, Any]


@dataclass(frozen=True)
class ParseFailure:
    reason: str


ExtractionResult = Union[ParsedResult, ParseFailure]


class _SchemaMismatch(ValueError):
    pass


def extract(text: str, schema: ExtractionSchema) -> ExtractionResult:
    """Locate a JSON payload in `text` and validate it against `schema`."""
    document = _locate_json(text or "")
    if document is None:
        return ParseFailure("no JSON found")

    if isinstance(document, list):
        if not schema.root_key:
            return ParseFailure("expected a JSON object, got an array")
        document = {schema.root_key: document}
    if not isinstance(document, dict):
        return ParseFailure("expected a JSON object")

    try:
        return ParsedResult(_validate_object(document, schema.fields, path=""))
    except _SchemaMismatch as exc:
        return ParseFailure(str(exc))


def _locate_json(text: str) -> Any:
    decoder = json.JSONDecoder(parse_float=Decimal)

    match = _FENCED_JSON.search(text)
    if match:
        try:
            return decoder.decode(match.group(1))
        except json.JSONDecodeError as exc:
            logger.debug("Fenced JSON block did not parse, scanning raw text: %s", exc)

    # raw_decode tracks nesting, strings and escapes, so the first opening
    # bracket that decodes is the first top-level value
    for index, char in enumerate(text):
        if char not in "{[":
            continue
        try:
            value, _ = decoder.raw_decode(text, index)
        except json.JSONDecodeError:
            continue
        if isinstance(value, (dict, list)):
            return value
    return None


def _validate_object(data: Dict[str, Any], fields: Tuple[FieldSpec, ...], path: str) -> Dict[str, Any]:
    result: Dict[str, Any] = {}
    for spec in fields:
        location = f"{path}{spec.name}"
        value = data.get(spec.name)
        if value is None:
            if spec.required:
                raise _SchemaMismatch(f"missing required field '{location}'")
            result[spec.name] = spec.enum_default if spec.enum_values else None
            continue
        result[spec.name] = _validate_value(value, spec, location)
    return result


def _validate_value(value: Any, spec: FieldSpec, location: str) -> Any:
    if spec.enum_values:
        return _coerce_enum(value, spec, location)

    if spec.type == "string":
        if isinstance(value, str):
            return value
        if isinstance(value, (int, Decimal)) and not isinstance(value, bool):
            return str(value)
        raise _SchemaMismatch(f"field '{location}' must be a string")

    if spec.type == "number":
        if isinstance(value, bool):
            raise _SchemaMismatch(f"field '{location}' must be a number")
        if isinstance(value, (int, Decimal)):
            return Decimal(value)
        if isinstance(value, str):
            try:
                return Decimal(value.strip())
            except InvalidOperation:
                pass
        raise _SchemaMismatch(f"field '{location}' must be a number")

    if spec.type == "list":
        if not isinstance(value, list):
            raise _SchemaMismatch(f"field '{location}' must be a list")
        if spec.max_items is not None:
            value = value[: spec.max_items]
        if not spec.item_schema:
            return list(value)
        items: List[Dict[str, Any]] = []
        for index, item in enumerate(value):
            if not isinstance(item, dict):
                raise _SchemaMismatch(f"item '{location}[{index}]' must be an object")
            items.append(_validate_object(item, spec.item_schema, path=f"{location}[{index}]."))
        return items

    if not isinstance(value, dict):
        raise _SchemaMismatch(f"field '{location}' must be an object")
    if spec.item_schema:
        return _validate_object(value, spec.item_schema, path=f"{location}.")
    return value


def _coerce_enum(value: Any, spec: FieldSpec, location: str) -> str:
    if isinstance(value, str):
        wanted = value.strip().lower()
        for member in spec.enum_values:
            if member.lower() == wanted:
                return member
    logger.debug("Unknown value %r for '%s', using %s", value, location, spec.enum_default)
    return spec.enum_default
