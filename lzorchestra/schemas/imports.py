"""
Legacy resource import schemas.

The import mapping is supplied externally: each entry names a legacy
deployment unit and the (account, region, phase) it belongs to. Phase tags
are numeric strings and may be negative.
"""

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class ImportMappingEntry:
    """
    One unit of the external import mapping.

    Attributes:
        unit_name: Legacy unit (stack) name
        account_id: Account the unit lives in
        region: Region the unit lives in
        phase: Numeric phase tag ("-1", "0", ...)
        template_path: Optional path to the unit's template
    """
    unit_name: str
    account_id: str
    region: str
    phase: str
    template_path: str | None = None

    def __post_init__(self):
        try:
            int(self.phase)
        except (TypeError, ValueError):
            raise ValueError(
                f"Import mapping entry {self.unit_name}: phase must be numeric, got {self.phase!r}"
            )

    @property
    def phase_number(self) -> int:
        return int(self.phase)

    @classmethod
    def from_dict(cls, unit_name: str, data: dict[str, Any]) -> "ImportMappingEntry":
        """Deserialize from a `{unitName -> {accountId, region, phase}}` mapping value."""
        return cls(
            unit_name=unit_name,
            account_id=str(data["accountId"]),
            region=data["region"],
            phase=str(data["phase"]),
            template_path=data.get("templatePath"),
        )


@dataclass(frozen=True)
class ImportPhase:
    """All matching mapping entries sharing one phase tag."""
    phase: str
    entries: tuple[ImportMappingEntry, ...] = field(default_factory=tuple)

    @property
    def phase_number(self) -> int:
        return int(self.phase)
