# core/patches.py
"""
Closed patch types shared by the workflows.

A patch is a frozen dataclass whose fields default to UNSET:
    UNSET  -> leave the column alone
    None   -> clear the column
    value  -> write the value
"""
from __future__ import annotations

from dataclasses import dataclass, fields
from typing import Any, Dict, Mapping


class _Unset:
    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "UNSET"

    def __bool__(self) -> bool:
        return False


UNSET: Any = _Unset()


@dataclass(frozen=True)
class Patch:
    def is_set(self, name: str) -> bool:
        return getattr(self, name) is not UNSET

    def changes(self) -> Dict[str, Any]:
        """Only the supplied fields, as a column -> value dict."""
        return {
            f.name: getattr(self, f.name)
            for f in fields(self)
            if getattr(self, f.name) is not UNSET
        }

    @property
    def is_empty(self) -> bool:
        return not self.changes()

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]):
        """
        Build a patch from a JSON body.
        Unknown keys raise TypeError; absent keys stay UNSET.
        """
        allowed = {f.name for f in fields(cls)}
        unknown = sorted(set(payload) - allowed)
        if unknown:
            raise TypeError(f"Unsupported fields for {cls.__name__}: {', '.join(unknown)}")
        return cls(**{key: cls.coerce(key, value) for key, value in payload.items()})

    @classmethod
    def coerce(cls, name: str, value: Any) -> Any:
        return value
