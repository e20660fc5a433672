"""Stage catalog: the fixed farm-to-table sequence.

Pure domain logic with no external dependencies. The catalog is built once
at startup from an ordered list of {id, label} pairs; ordinals come from list
position and the catalog is never mutated afterwards.
"""
from collections.abc import Iterable, Iterator
from dataclasses import dataclass

from farmtrack.core.exceptions import CatalogConfigurationError, StageNotFoundError


@dataclass(frozen=True)
class Stage:
    """One step in the farm-to-table sequence. Ordinal defines ordering."""

    id: str
    ordinal: int
    label: str
    description: str = ""


class StageCatalog:
    """Read-only, ordered collection of stages."""

    def __init__(self, entries: Iterable):
        stages: list[Stage] = []
        by_id: dict[str, Stage] = {}

        for ordinal, entry in enumerate(entries):
            stage_id, label, description = _unpack_entry(entry)
            if stage_id is not None and not isinstance(stage_id, str):
                raise CatalogConfigurationError(f"Stage id at position {ordinal} must be a string: {stage_id!r}")
            stage_id = (stage_id or "").strip()
            if not stage_id:
                raise CatalogConfigurationError(f"Stage at position {ordinal} has a blank id")
            if stage_id in by_id:
                raise CatalogConfigurationError(f"Duplicate stage id: {stage_id!r}")

            stage = Stage(id=stage_id, ordinal=ordinal, label=label or stage_id, description=description or "")
            stages.append(stage)
            by_id[stage_id] = stage

        if not stages:
            raise CatalogConfigurationError("Stage catalog is empty")

        self._stages: tuple[Stage, ...] = tuple(stages)
        self._by_id = by_id

    @property
    def stages(self) -> tuple[Stage, ...]:
        return self._stages

    def stage_by_ordinal(self, ordinal: int) -> Stage:
        if not 0 <= ordinal < len(self._stages):
            raise StageNotFoundError(ordinal)
        return self._stages[ordinal]

    def stage_by_id(self, stage_id: str) -> Stage:
        try:
            return self._by_id[stage_id]
        except KeyError:
            raise StageNotFoundError(stage_id) from None

    def total_stages(self) -> int:
        return len(self._stages)

    def next_stage(self, stage_id: str) -> Stage | None:
        """Stage following stage_id, or None when stage_id is terminal."""
        stage = self.stage_by_id(stage_id)
        if stage.ordinal + 1 >= len(self._stages):
            return None
        return self._stages[stage.ordinal + 1]

    def __contains__(self, stage_id: object) -> bool:
        return stage_id in self._by_id

    def __iter__(self) -> Iterator[Stage]:
        return iter(self._stages)

    def __len__(self) -> int:
        return len(self._stages)


def _unpack_entry(entry) -> tuple[str, str, str]:
    """Accept dicts, StageConfig models, or (id, label) pairs."""
    if isinstance(entry, dict):
        return entry.get("id", ""), entry.get("label", ""), entry.get("description", "")
    if isinstance(entry, (tuple, list)):
        if len(entry) < 2:
            raise CatalogConfigurationError(f"Stage entry needs an id and a label: {entry!r}")
        return entry[0], entry[1], entry[2] if len(entry) > 2 else ""
    try:
        return entry.id, entry.label, getattr(entry, "description", "")
    except AttributeError:
        raise CatalogConfigurationError(f"Unsupported stage entry: {entry!r}") from None


# Process-wide catalog, set once at startup
_catalog: StageCatalog | None = None


def init_catalog(entries: Iterable) -> StageCatalog:
    """Build the process-wide catalog. Raises CatalogConfigurationError if unusable."""
    global _catalog
    _catalog = StageCatalog(entries)
    return _catalog


def get_catalog() -> StageCatalog:
    """Return the process-wide catalog.

    Raises RuntimeError if init_catalog() has not been called.
    """
    if _catalog is None:
        raise RuntimeError("Stage catalog not initialized. Call init_catalog() first.")
    return _catalog
