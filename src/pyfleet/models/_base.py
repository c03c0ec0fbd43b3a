"""Base model and enum for fleet documents.

Every document model inherits from :class:`FleetBaseModel` which
provides:

* frozen instances, so a model handed to another coroutine can never
  change under it;
* ``populate_by_name`` so both the admin store's field names (aliases)
  and the Python names are accepted;
* a ``model_validator(mode="before")`` that drops placeholder values
  (``None``, ``""``, ``"--"``) so field defaults apply instead.

String enums inherit from :class:`FleetEnum`, which matches values
case-insensitively (``"Active"`` parses as ``"active"``).
"""

from __future__ import annotations

import enum
from typing import Any, ClassVar

from pydantic import BaseModel, ConfigDict, model_validator

_PLACEHOLDERS = frozenset({"", "--"})


class FleetEnum(enum.StrEnum):
    """Base for string enums parsed from loosely typed documents."""

    @classmethod
    def _missing_(cls, value: object) -> FleetEnum | None:
        if isinstance(value, str):
            lowered = value.strip().lower()
            for member in cls:
                if member.value == lowered:
                    return member
        return None


class FleetBaseModel(BaseModel):
    """Base for fleet document models."""

    _KEY_ALIASES: ClassVar[dict[str, str]] = {}

    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
        populate_by_name=True,
    )

    @model_validator(mode="before")
    @classmethod
    def _drop_placeholders(cls, values: Any) -> Any:
        if not isinstance(values, dict):
            return values
        aliases: dict[str, str] = getattr(cls, "_KEY_ALIASES", {})
        cleaned: dict[str, Any] = {}
        for key, value in values.items():
            if value is None:
                continue
            if isinstance(value, str) and value.strip() in _PLACEHOLDERS:
                continue
            cleaned[aliases.get(key, key)] = value
        return cleaned
