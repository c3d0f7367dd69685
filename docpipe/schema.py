"""Extraction schema partitioning.

A schema is a JSON-schema object. Properties annotated with ``"perPage": true``
are extracted once per page; all other properties are extracted once from the
whole document.
"""

from __future__ import annotations

import copy
import logging
from collections.abc import Mapping
from typing import Any

from .constants import PER_PAGE_KEY
from .exceptions import InvalidSchemaError

logger = logging.getLogger(__name__)

__all__ = ["split_schema", "schema_fields"]

_PARTITIONED_KEYS = ("properties", "required")


def schema_fields(schema: Mapping[str, Any]) -> list[str]:
    """Return the schema's property names in declaration order."""
    properties = schema.get("properties")
    if not isinstance(properties, Mapping):
        raise InvalidSchemaError("Extraction schema must be an object with a 'properties' mapping")
    return list(properties)


def _strip_annotation(field_schema: Any) -> Any:
    if isinstance(field_schema, Mapping):
        return {key: copy.deepcopy(value) for key, value in field_schema.items() if key != PER_PAGE_KEY}
    return copy.deepcopy(field_schema)


def _build_partition(
    schema: Mapping[str, Any],
    properties: dict[str, Any],
    required: list[str],
) -> dict[str, Any] | None:
    if not properties:
        return None

    partition = {key: copy.deepcopy(value) for key, value in schema.items() if key not in _PARTITIONED_KEYS}
    partition.setdefault("type", "object")
    partition["properties"] = properties
    field_required = [name for name in required if name in properties]
    if field_required:
        partition["required"] = field_required
    return partition


def split_schema(
    schema: Mapping[str, Any],
    per_page_override: bool = False,
) -> tuple[dict[str, Any] | None, dict[str, Any] | None]:
    """Partition a schema into per-page and full-document sub-schemas.

    Field order is preserved within each partition, ``required`` entries
    follow their fields, and the ``perPage`` annotation is removed from the
    emitted sub-schemas. The input is not modified.

    Args:
        schema: JSON-schema object with a ``properties`` mapping
        per_page_override: Put every field in the per-page partition

    Returns:
        Tuple of (per_page_schema, full_doc_schema); a partition with no
        fields is returned as None, meaning "skip this extraction track"

    Raises:
        InvalidSchemaError: If the schema has no ``properties`` mapping

    Example:
        >>> per_page, full_doc = split_schema({
        ...     "type": "object",
        ...     "properties": {
        ...         "line_items": {"type": "array", "perPage": True},
        ...         "invoice_total": {"type": "number"},
        ...     },
        ... })
        >>> list(per_page["properties"]), list(full_doc["properties"])
        (['line_items'], ['invoice_total'])
    """
    schema_fields(schema)
    properties: Mapping[str, Any] = schema["properties"]
    required = schema.get("required") or []
    if not isinstance(required, list):
        raise InvalidSchemaError("Extraction schema 'required' must be a list")

    per_page_properties: dict[str, Any] = {}
    full_doc_properties: dict[str, Any] = {}

    for name, field_schema in properties.items():
        per_page = per_page_override or (
            isinstance(field_schema, Mapping) and bool(field_schema.get(PER_PAGE_KEY, False))
        )
        target = per_page_properties if per_page else full_doc_properties
        target[name] = _strip_annotation(field_schema)

    logger.debug(
        "Split schema: %d per-page field(s), %d full-document field(s)",
        len(per_page_properties),
        len(full_doc_properties),
    )

    return (
        _build_partition(schema, per_page_properties, required),
        _build_partition(schema, full_doc_properties, required),
    )
