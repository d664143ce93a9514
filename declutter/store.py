"""Durable storage for the destination registry.

A small JSON key-value file holding the destination records and the
active destination id.
"""

import json
import logging
import uuid
from pathlib import Path
from typing import Any

from declutter.config import get_store_path
from declutter.models import Destination, RegistryState

logger = logging.getLogger(__name__)

DESTINATIONS_KEY = "savedCloudDestinations"
ACTIVE_KEY = "activeCloudDestinationId"


class DestinationStore:
    """Reads and writes :class:`RegistryState` as JSON."""

    def __init__(self, path: Path | None = None):
        self._path = path or get_store_path()

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> RegistryState:
        """Return the stored state, or an empty state if none can be read."""
        state = RegistryState()
        if not self._path.exists():
            return state
        try:
            with open(self._path, encoding="utf-8") as fh:
                stored: dict[str, Any] = json.load(fh)
        except (json.JSONDecodeError, OSError) as exc:
            logger.warning("Could not read destinations (%s); starting empty.", exc)
            return state
        if not isinstance(stored, dict):
            logger.warning("Destination store %s is not an object; starting empty.", self._path)
            return state

        records = stored.get(DESTINATIONS_KEY)
        if isinstance(records, list):
            for record in records:
                try:
                    state.destinations.append(Destination.from_dict(record))
                except (KeyError, ValueError, TypeError, AttributeError) as exc:
                    logger.warning("Skipping undecodable destination %r (%s)", record, exc)

        active = stored.get(ACTIVE_KEY)
        if active:
            try:
                state.active_id = uuid.UUID(str(active))
            except ValueError:
                logger.warning("Ignoring invalid active destination id %r", active)
        logger.info(
            "Loaded %d destination(s) from %s", len(state.destinations), self._path
        )
        return state

    def save(self, state: RegistryState) -> None:
        """Persist *state*, replacing the previous file."""
        data: dict[str, Any] = {
            DESTINATIONS_KEY: [d.to_dict() for d in state.destinations],
        }
        if state.active_id is not None:
            data[ACTIVE_KEY] = str(state.active_id)
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            tmp = self._path.with_name(self._path.name + ".tmp")
            with open(tmp, "w", encoding="utf-8") as fh:
                json.dump(data, fh, indent=2)
            tmp.replace(self._path)
            logger.debug("Destinations saved to %s", self._path)
        except OSError as exc:
            logger.error("Failed to save destinations: %s", exc)
