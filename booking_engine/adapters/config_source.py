"""
Availability configuration source.

Each facility's ``AvailabilityConfig`` is an immutable, versioned snapshot.
``publish`` builds a new mapping and swaps the reference, so a reader that
already fetched a snapshot keeps computing with it while later readers see
the new version. Existing bookings are never revalidated against a newer
snapshot.

Usage:
    source = StaticConfigSource({"clinic-a": config})
    config = await source.get("clinic-a")
    source.publish("clinic-a", updated)   # version bumps
"""

import asyncio
import json
import logging
from dataclasses import replace
from pathlib import Path
from types import MappingProxyType
from typing import Callable, Mapping, Optional, Protocol, Union

from pydantic import ValidationError

from booking_engine.errors import UnknownFacility
from booking_engine.scheduling.rules import AvailabilityConfig
from booking_engine.schemas.availability_schema import AvailabilityConfigInput

logger = logging.getLogger(__name__)

ConfigLoader = Callable[[], Mapping[str, AvailabilityConfig]]


class ConfigSource(Protocol):
    async def get(self, facility_id: str) -> AvailabilityConfig:
        ...


class StaticConfigSource:
    """In-process config source holding one snapshot per facility."""

    def __init__(
        self,
        configs: Optional[Mapping[str, AvailabilityConfig]] = None,
        loader: Optional[ConfigLoader] = None,
    ) -> None:
        self._loader = loader
        self._snapshots: Mapping[str, AvailabilityConfig] = MappingProxyType({})
        initial = dict(configs or {})
        if loader is not None and not initial:
            initial = dict(loader())
        for facility_id, config in initial.items():
            self.publish(facility_id, config)

    async def get(self, facility_id: str) -> AvailabilityConfig:
        config = self._snapshots.get(facility_id)
        if config is None:
            raise UnknownFacility(facility_id)
        return config

    def facilities(self) -> list[str]:
        return sorted(self._snapshots)

    def publish(self, facility_id: str, config: AvailabilityConfig) -> AvailabilityConfig:
        """Install a new snapshot for the facility with the next version number."""
        current = self._snapshots.get(facility_id)
        version = current.version + 1 if current is not None else 1
        snapshot = replace(
            config,
            facility_id=facility_id,
            version=version,
            working_hours=dict(config.working_hours),
        )
        updated = dict(self._snapshots)
        updated[facility_id] = snapshot
        self._snapshots = MappingProxyType(updated)
        logger.info("Published availability config for %s (version %d)", facility_id, version)
        return snapshot

    def refresh(self) -> int:
        """Re-read every facility from the loader. Returns how many were published."""
        if self._loader is None:
            return 0
        configs = self._loader()
        for facility_id, config in configs.items():
            current = self._snapshots.get(facility_id)
            if current is not None:
                candidate = replace(config, facility_id=facility_id, version=current.version)
                if candidate == current:
                    continue
            self.publish(facility_id, config)
        return len(configs)

    async def refresh_forever(
        self, interval_seconds: float, stop: Optional[asyncio.Event] = None
    ) -> None:
        """Poll the loader until ``stop`` is set. Bad reloads keep the last good snapshot."""
        stop = stop or asyncio.Event()
        while not stop.is_set():
            try:
                await asyncio.wait_for(stop.wait(), timeout=interval_seconds)
            except asyncio.TimeoutError:
                pass
            if stop.is_set():
                return
            try:
                self.refresh()
            except (OSError, ValueError) as exc:
                logger.error("Availability config refresh failed, keeping current: %s", exc)


def parse_availability_configs(data: Mapping[str, object]) -> dict[str, AvailabilityConfig]:
    """Validate a ``{facility_id: config}`` mapping in wire format.

    Raises:
        ValueError: naming the facility whose entry failed validation.
    """
    configs: dict[str, AvailabilityConfig] = {}
    for facility_id, raw in data.items():
        try:
            configs[facility_id] = AvailabilityConfigInput.model_validate(raw).to_config(facility_id)
        except ValidationError as exc:
            raise ValueError(f"Invalid availability config for '{facility_id}': {exc}") from exc
    return configs


def load_availability_configs(path: Union[str, Path]) -> dict[str, AvailabilityConfig]:
    """Read facility configs from a JSON file."""
    with open(path, encoding="utf-8") as fh:
        data = json.load(fh)
    if not isinstance(data, dict):
        raise ValueError(f"{path}: expected an object keyed by facility id")
    configs = parse_availability_configs(data)
    logger.info("Loaded %d facility config(s) from %s", len(configs), path)
    return configs


def file_loader(path: Union[str, Path]) -> ConfigLoader:
    return lambda: load_availability_configs(path)
