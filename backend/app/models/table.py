"""
Table schema types.

A form table's schema is an ordered, append-only list of SchemaColumn. The
free-form type tag posted by the form is kept verbatim for persistence; the
pipeline dispatches on the closed ColumnKind derived from it.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class ColumnKind(str, Enum):
    PLAIN = "plain"
    FILE = "file"

    @classmethod
    def from_tag(cls, tag: Optional[str]) -> "ColumnKind":
        if tag and tag.strip().lower() == cls.FILE.value:
            return cls.FILE
        return cls.PLAIN


@dataclass(frozen=True)
class SchemaColumn:
    name: str
    type: Optional[str] = None

    @property
    def kind(self) -> ColumnKind:
        return ColumnKind.from_tag(self.type)

    def to_dict(self) -> dict:
        return {"name": self.name, "type": self.type}

    @classmethod
    def from_dict(cls, data: dict) -> "SchemaColumn":
        return cls(name=str(data.get("name", "")), type=data.get("type"))
