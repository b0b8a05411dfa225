"""
Phase import sequencer.

Replays an externally supplied mapping of legacy resources into deployment
units. Entries carry an integer phase tag; phases run strictly in ascending
numeric order (negative phases first), and the units of one phase are built
concurrently. The aggregated resource mapping of a phase is persisted before
the next phase starts.

Mapping format:
    {
        "NetworkStack-111111111111-us-east-1": {
            "accountId": "111111111111",
            "region": "us-east-1",
            "phase": "-1",
        },
        ...
    }
"""

import asyncio
import json
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Awaitable, Callable, Iterable, Optional

from lzorchestra.catalog import IMPORT_STAGES
from lzorchestra.errors import ConfigurationError
from lzorchestra.scheduler import RunOrderScheduler
from lzorchestra.schemas import ImportMappingEntry, ImportPhase

logger = logging.getLogger(__name__)


# Phases every import run walks, even when the mapping has no entries for them
KNOWN_PHASES = ("-1", "0", "1", "2", "3", "4", "5")

UnitBuilder = Callable[[ImportMappingEntry], Awaitable[dict[str, Any]]]


# =============================================================================
# MAPPING STORES
# =============================================================================


class MappingStore(ABC):
    """Persists the aggregated resource mapping of each phase."""

    @abstractmethod
    async def save(self, phase: str, mapping: dict[str, Any]) -> None:
        """Persist one phase's aggregated mapping."""


class InMemoryMappingStore(MappingStore):
    """Keeps saved phases in memory, in save order."""

    def __init__(self) -> None:
        self.saved: list[tuple[str, dict[str, Any]]] = []

    async def save(self, phase: str, mapping: dict[str, Any]) -> None:
        self.saved.append((phase, dict(mapping)))


class JsonFileMappingStore(MappingStore):
    """
    Writes the mapping to a JSON file keyed by phase.

    Each save rewrites the file with all phases saved so far.
    """

    def __init__(self, path: Path | str):
        self.path = Path(path)
        self._phases: dict[str, dict[str, Any]] = {}

    async def save(self, phase: str, mapping: dict[str, Any]) -> None:
        self._phases[phase] = dict(mapping)
        await asyncio.to_thread(self._write)

    def _write(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, "w") as f:
            json.dump(self._phases, f, indent=2, sort_keys=True, default=str)


# =============================================================================
# SEQUENCER
# =============================================================================


def parse_import_mapping(mapping: dict[str, dict[str, Any]]) -> list[ImportMappingEntry]:
    """Convert a raw `{unitName -> {accountId, region, phase}}` mapping to entries."""
    return [ImportMappingEntry.from_dict(name, data) for name, data in mapping.items()]


def group_phases(
    entries: Iterable[ImportMappingEntry], account_id: str, region: str
) -> list[ImportPhase]:
    """
    Group the entries of one environment by phase, ascending numerically.

    Every known phase is returned, empty or not, along with any other phase
    found in the entries.
    """
    buckets: dict[int, list[ImportMappingEntry]] = {int(p): [] for p in KNOWN_PHASES}
    for entry in entries:
        if entry.account_id == account_id and entry.region == region:
            buckets.setdefault(entry.phase_number, []).append(entry)
    return [
        ImportPhase(phase=str(number), entries=tuple(buckets[number]))
        for number in sorted(buckets)
    ]


class PhaseImportSequencer:
    """
    Sequential-phase, concurrent-unit import driver.

    Usage:
        sequencer = PhaseImportSequencer(build_unit, store, stage="import-asea-resources",
                                         prefix="Accelerator")
        results = await sequencer.run(mapping, "111111111111", "us-east-1")
    """

    def __init__(
        self,
        build_unit: UnitBuilder,
        store: Optional[MappingStore] = None,
        stage: Optional[str] = None,
        prefix: Optional[str] = None,
        scheduler: Optional[RunOrderScheduler] = None,
    ):
        """
        Initialize the sequencer.

        Args:
            build_unit: Builds one unit and returns its discovered resources
            store: Where each phase's aggregated mapping is persisted
            stage: Stage driving the import; only import stages persist
            prefix: Accelerator prefix (required)
            scheduler: Scheduler used to run a phase's units concurrently
        """
        self.build_unit = build_unit
        self.store = store
        self.stage = stage
        self.prefix = prefix
        self.scheduler = scheduler or RunOrderScheduler()

    @property
    def persists(self) -> bool:
        if self.store is None:
            return False
        return self.stage is None or self.stage in IMPORT_STAGES

    async def run(
        self,
        mapping: Optional[dict[str, dict[str, Any]]],
        account_id: str,
        region: str,
    ) -> dict[str, dict[str, Any]]:
        """
        Import every phase for one (account, region).

        Args:
            mapping: External `{unitName -> {accountId, region, phase}}` mapping
            account_id: Target account
            region: Target region

        Returns:
            Aggregated resource mapping per non-empty phase, in phase order

        Raises:
            ConfigurationError: If the mapping or prefix is missing
        """
        if mapping is None or not self.prefix:
            raise ConfigurationError("Configuration validation failed at runtime.")

        entries = parse_import_mapping(mapping)
        results: dict[str, dict[str, Any]] = {}

        for phase in group_phases(entries, account_id, region):
            if not phase.entries:
                logger.warning(
                    f"No import units found for account {account_id} in region {region} "
                    f"for phase {phase.phase}",
                    extra={"account": account_id, "region": region, "phase": phase.phase},
                )
                continue

            logger.info(
                f"Importing {len(phase.entries)} units for phase {phase.phase}",
                extra={"account": account_id, "region": region, "phase": phase.phase},
            )
            discovered = await self.scheduler.gather(phase.entries, self.build_unit)

            aggregated = {
                entry.unit_name: resources
                for entry, resources in zip(phase.entries, discovered)
            }
            if self.persists:
                await self.store.save(phase.phase, aggregated)
            results[phase.phase] = aggregated

        return results
