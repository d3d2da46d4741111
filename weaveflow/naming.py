"""Declared input/output names and their optional ``: type`` annotation.

Agents declare fields as ``"summary"`` or ``"summary: string"``. Two declared
names refer to the same field when the text before the first ``:`` matches
after trimming whitespace. Comparison is case-sensitive.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Any, Mapping, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict


class FieldSpec(BaseModel):
    """A declared field parsed as ``name[':' ws* type]``."""

    model_config = ConfigDict(frozen=True)

    raw: str
    name: str
    type: Optional[str] = None


def normalize(name: str) -> str:
    """Return the comparison key for a field name."""
    return name.split(":", 1)[0].strip()


@lru_cache(maxsize=1024)
def parse_field(raw: str) -> FieldSpec:
    """Parse a declared name into its field name and annotation.

    Results are cached, so each distinct declaration is parsed once.
    """
    name, sep, annotation = raw.partition(":")
    field_type = annotation.strip() if sep else None
    return FieldSpec(raw=raw, name=name.strip(), type=field_type or None)


def lookup(
    values: Mapping[str, Any], declared: Union[str, FieldSpec]
) -> Tuple[bool, Any]:
    """Find the value for ``declared`` in ``values``.

    The exact declared key is tried first, then the field name, then any key
    in ``values`` that normalizes to the same field name.

    Returns:
        ``(found, value)``; ``value`` is ``None`` when nothing matched.
    """
    field = declared if isinstance(declared, FieldSpec) else parse_field(declared)
    if field.raw in values:
        return True, values[field.raw]

    if field.name in values:
        return True, values[field.name]

    for candidate, value in values.items():
        if normalize(candidate) == field.name:
            return True, value
    return False, None
