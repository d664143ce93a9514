"""Data model: destinations, registry state, and the files being triaged."""

from __future__ import annotations

import base64
import binascii
import logging
import uuid
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from declutter.providers import Provider

logger = logging.getLogger(__name__)


@dataclass
class Destination:
    """One user-registered cloud root.

    ``bookmark_data`` is an opaque access token; ``None`` means the
    destination is used through ``path`` directly.
    """
    name: str
    path: str
    provider: Provider
    bookmark_data: bytes | None = None
    id: uuid.UUID = field(default_factory=uuid.uuid4)

    def to_dict(self) -> dict[str, Any]:
        record: dict[str, Any] = {
            "id": str(self.id),
            "name": self.name,
            "path": self.path,
            "provider": self.provider.value,
        }
        if self.bookmark_data is not None:
            record["bookmarkData"] = base64.b64encode(self.bookmark_data).decode("ascii")
        return record

    @classmethod
    def from_dict(cls, record: dict[str, Any]) -> Destination:
        """Build a destination from its persisted form.

        Raises KeyError / ValueError for records missing required fields.
        An undecodable token is dropped rather than rejecting the record.
        """
        token = None
        raw = record.get("bookmarkData")
        if raw:
            try:
                token = base64.b64decode(raw, validate=True)
            except (binascii.Error, ValueError, TypeError):
                logger.warning(
                    "Dropping undecodable access token for destination %s",
                    record.get("id"),
                )
        return cls(
            id=uuid.UUID(record["id"]),
            name=record["name"],
            path=record["path"],
            provider=Provider(record["provider"]),
            bookmark_data=token,
        )


@dataclass
class RegistryState:
    """Ordered destinations plus the active selection."""
    destinations: list[Destination] = field(default_factory=list)
    active_id: uuid.UUID | None = None


@dataclass(frozen=True)
class TriageFile:
    """A file offered for relocation."""
    path: Path
    name: str
    size: int = 0

    @classmethod
    def from_path(cls, path: str | Path) -> TriageFile:
        p = Path(path)
        try:
            size = p.stat().st_size
        except OSError:
            size = 0
        return cls(path=p, name=p.name, size=size)
