"""Base model and enum shared by geosim models.

Every configuration / wire model inherits from :class:`GeoBaseModel`
which provides:

* ``alias_generator=to_camel`` so camelCase JSON keys map
  automatically to snake_case fields (snake_case is accepted too).
* Frozen instances: values are replaced wholesale, never mutated.

Status enums inherit from :class:`GeoEnum` which adds a ``_missing_``
hook that returns ``UNKNOWN`` for any value without a mapped member.
"""

from __future__ import annotations

import enum

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class GeoEnum(enum.IntEnum):
    """Base for small integer status enums.

    Every subclass **must** define ``UNKNOWN = -1``.
    Unmapped values resolve to ``UNKNOWN`` instead of raising ``ValueError``.
    """

    @classmethod
    def _missing_(cls, value: object) -> GeoEnum:
        # pylint: disable=no-member
        if hasattr(cls, "UNKNOWN"):
            unknown: GeoEnum = cls.UNKNOWN  # type: ignore[attr-defined]
            return unknown
        return next(iter(cls))


class GeoBaseModel(BaseModel):
    """Base for geosim configuration and wire models."""

    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
        populate_by_name=True,
        alias_generator=to_camel,
    )
