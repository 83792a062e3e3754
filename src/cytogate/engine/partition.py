# src/cytogate/engine/partition.py
"""Grouping of a population's per-sample data before a method runs.

A method is called once per group. Grouping follows the descriptor:
no group-by means one group per sample (or a single "all" group when
collapsing), a sample count means consecutive chunks of that many samples,
and study variables mean one group per distinct combination of values.
"""

from __future__ import annotations

from collections.abc import Callable, Iterator, Mapping
from typing import Any

from cytogate.contracts.errors import ConfigurationError
from cytogate.contracts.types import GroupKey
from cytogate.core.dag.models import GroupBy

COLLAPSED_GROUP = GroupKey("all")
_KEY_SEPARATOR = ":"


class Partition(Mapping[GroupKey, Mapping[str, Any]]):
    """Ordered mapping of group key to that group's sample -> payload mapping.

    Groups appear in order of their first sample; samples keep their input
    order within each group.
    """

    def __init__(self, groups: Mapping[GroupKey, Mapping[str, Any]] | None = None) -> None:
        self._groups: dict[GroupKey, dict[str, Any]] = {key: dict(value) for key, value in (groups or {}).items()}
        self._membership: dict[str, GroupKey] = {}
        for key, samples in self._groups.items():
            for sample in samples:
                self._membership[sample] = key

    def __getitem__(self, key: GroupKey) -> Mapping[str, Any]:
        return self._groups[key]

    def __iter__(self) -> Iterator[GroupKey]:
        return iter(self._groups)

    def __len__(self) -> int:
        return len(self._groups)

    def __repr__(self) -> str:
        summary = {key: list(samples) for key, samples in self._groups.items()}
        return f"Partition({summary!r})"

    def group_of(self, sample: str) -> GroupKey:
        """Key of the group holding a sample.

        Raises:
            KeyError: If the sample is not in the partition
        """
        return self._membership[sample]

    def samples(self) -> list[str]:
        """Every sample, in group order."""
        return [sample for samples in self._groups.values() for sample in samples]


def _study_key(sample: str, columns: tuple[str, ...], metadata: Callable[[str], Mapping[str, Any]]) -> GroupKey:
    values = metadata(sample)
    missing = [column for column in columns if column not in values]
    if missing:
        raise ConfigurationError(f"Sample '{sample}' has no study variable(s) {', '.join(missing)} required by groupBy")
    return GroupKey(_KEY_SEPARATOR.join(str(values[column]) for column in columns))


def partition(
    data: Mapping[str, Any],
    group_by: GroupBy | None,
    collapse: bool,
    metadata: Callable[[str], Mapping[str, Any]] | None = None,
) -> Partition:
    """Split per-sample data into method-call groups.

    Args:
        data: Ordered mapping of sample name to payload
        group_by: Grouping specifier, or None
        collapse: Whether samples are pooled when there is no group-by
        metadata: Study-variable lookup, required for column group-by

    Returns:
        Partition covering every sample exactly once

    Raises:
        ConfigurationError: If a column group-by cannot be resolved
    """
    groups: dict[GroupKey, dict[str, Any]] = {}
    if not data:
        return Partition(groups)

    if group_by is None:
        if collapse:
            return Partition({COLLAPSED_GROUP: data})
        return Partition({GroupKey(sample): {sample: payload} for sample, payload in data.items()})

    if group_by.every is not None:
        for index, (sample, payload) in enumerate(data.items()):
            groups.setdefault(GroupKey(str(index // group_by.every + 1)), {})[sample] = payload
        return Partition(groups)

    if metadata is None:
        raise ConfigurationError(f"groupBy '{group_by}' needs study metadata, but no metadata lookup was provided")
    for sample, payload in data.items():
        groups.setdefault(_study_key(sample, group_by.columns, metadata), {})[sample] = payload
    return Partition(groups)
