# chuk_ai_coach/base_models.py
"""Result models that can also be read like the RPC payload dicts they replace."""

from __future__ import annotations

from collections.abc import Iterator
from typing import Any

from pydantic import BaseModel


class DictCompatModel(BaseModel):
    """Read-only mapping view over a result model's declared fields.

    ``result["success"]``, ``result.get("reason")`` and ``"reason" in result``
    behave as they would on the payload dict; a key that is not a field raises
    ``KeyError``. A model compares equal to a dict holding its dumped fields.
    """

    def _field_names(self) -> Iterator[str]:
        return iter(type(self).model_fields)

    def __getitem__(self, key: str) -> Any:
        if key not in type(self).model_fields:
            raise KeyError(key)
        return getattr(self, key)

    def get(self, key: str, default: Any = None) -> Any:
        try:
            return self[key]
        except KeyError:
            return default

    def keys(self) -> list[str]:
        return list(self._field_names())

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and key in type(self).model_fields

    def __eq__(self, other: object) -> bool:
        if isinstance(other, dict):
            return other == self.model_dump()
        return super().__eq__(other)
