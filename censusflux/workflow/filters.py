"""Declarative peptide and protein filters.

Every filter is a small frozen dataclass exposing a ``passes`` predicate and a
``to_config`` encoder. The configuration document is a tagged union: bare tags
for parameterless filters (``"Unique"``) and single-key mappings for the
parameterized ones (``{"TotalIntensity": 5000}``). YAML is a superset of JSON,
so the same loader reads both ``filter.json`` and ``filter.yaml``.
"""
from __future__ import annotations

import json
from dataclasses import dataclass, field
from numbers import Real
from pathlib import Path
from typing import Any, ClassVar, List, Tuple, Union

import numpy as np
import yaml

from censusflux.dataset.census import Peptide, Protein


class FilterConfigError(ValueError):
    """Raised for any malformed filter document or out-of-range filter parameter."""


def _number(tag: str, value: Any) -> Union[int, float]:
    if isinstance(value, bool) or not isinstance(value, Real):
        raise FilterConfigError(f"{tag}: threshold must be a number, got {value!r}")
    if value < 0:
        raise FilterConfigError(f"{tag}: threshold must be non-negative, got {value!r}")
    return value


def _channel(tag: str, value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise FilterConfigError(f"{tag}: channel index must be an integer, got {value!r}")
    if value < 1:
        raise FilterConfigError(f"{tag}: channel indices are 1-based, got {value}")
    return value


def _count(tag: str, value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise FilterConfigError(f"{tag}: expected a non-negative integer, got {value!r}")
    return value


def _pattern(tag: str, value: Any) -> str:
    if not isinstance(value, str) or not value:
        raise FilterConfigError(f"{tag}: expected a non-empty string, got {value!r}")
    return value


# ----------------------------------------------------------------------
# Peptide filters
# ----------------------------------------------------------------------

@dataclass(frozen=True)
class Unique:
    tag: ClassVar[str] = "Unique"

    def passes(self, peptide: Peptide, channels: int) -> bool:
        return peptide.unique

    def to_config(self):
        return self.tag


@dataclass(frozen=True)
class Tryptic:
    tag: ClassVar[str] = "Tryptic"

    def passes(self, peptide: Peptide, channels: int) -> bool:
        return peptide.tryptic

    def to_config(self):
        return self.tag


@dataclass(frozen=True)
class TotalIntensity:
    threshold: float
    tag: ClassVar[str] = "TotalIntensity"

    def passes(self, peptide: Peptide, channels: int) -> bool:
        return peptide.total_intensity() >= self.threshold

    def to_config(self):
        return {self.tag: self.threshold}


@dataclass(frozen=True)
class ChannelIntensity:
    channel: int
    threshold: float
    tag: ClassVar[str] = "ChannelIntensity"

    def check_channels(self, channels: int) -> None:
        if self.channel > channels:
            raise FilterConfigError(
                f"{self.tag}: channel {self.channel} out of range for a {channels}-channel dataset"
            )

    def passes(self, peptide: Peptide, channels: int) -> bool:
        return peptide.values[self.channel - 1] >= self.threshold

    def to_config(self):
        return {self.tag: [self.channel, self.threshold]}


@dataclass(frozen=True)
class ChannelCV:
    """Coefficient of variation (population sd / mean) across a channel subset."""
    channels: Tuple[int, ...]
    threshold: float
    tag: ClassVar[str] = "ChannelCV"

    def check_channels(self, channels: int) -> None:
        bad = [c for c in self.channels if c > channels]
        if bad:
            raise FilterConfigError(
                f"{self.tag}: channels {bad} out of range for a {channels}-channel dataset"
            )

    def cv(self, peptide: Peptide) -> float:
        vals = np.asarray([peptide.values[c - 1] for c in self.channels], dtype=np.float64)
        mean = vals.mean()
        if mean == 0:
            return float("nan")
        return float(vals.std(ddof=0) / mean)

    def passes(self, peptide: Peptide, channels: int) -> bool:
        # NaN (zero mean) compares False
        return self.cv(peptide) <= self.threshold

    def to_config(self):
        return {self.tag: [list(self.channels), self.threshold]}


@dataclass(frozen=True)
class SequenceContains:
    pattern: str
    tag: ClassVar[str] = "SequenceContains"

    def passes(self, peptide: Peptide, channels: int) -> bool:
        return self.pattern in peptide.sequence

    def to_config(self):
        return {self.tag: self.pattern}


@dataclass(frozen=True)
class SequenceExcludes:
    pattern: str
    tag: ClassVar[str] = "SequenceExcludes"

    def passes(self, peptide: Peptide, channels: int) -> bool:
        return self.pattern not in peptide.sequence

    def to_config(self):
        return {self.tag: self.pattern}


PeptideFilter = Union[
    Unique, Tryptic, TotalIntensity, ChannelIntensity, ChannelCV, SequenceContains, SequenceExcludes
]


# ----------------------------------------------------------------------
# Protein filters (evaluated on the peptide-pruned protein)
# ----------------------------------------------------------------------

@dataclass(frozen=True)
class ExcludeReverse:
    tag: ClassVar[str] = "ExcludeReverse"

    def passes(self, protein: Protein) -> bool:
        return not protein.reverse

    def to_config(self):
        return self.tag


@dataclass(frozen=True)
class SequenceCounts:
    threshold: int
    tag: ClassVar[str] = "SequenceCounts"

    def passes(self, protein: Protein) -> bool:
        return protein.distinct_sequences() >= self.threshold

    def to_config(self):
        return {self.tag: self.threshold}


@dataclass(frozen=True)
class SpectralCounts:
    threshold: int
    tag: ClassVar[str] = "SpectralCounts"

    def passes(self, protein: Protein) -> bool:
        return len(protein.peptides) >= self.threshold

    def to_config(self):
        return {self.tag: self.threshold}


ProteinFilter = Union[ExcludeReverse, SequenceCounts, SpectralCounts]


def _split_tagged(entry: Any) -> Tuple[str, Any]:
    """Return (tag, payload) for a bare tag or a single-key mapping."""
    if isinstance(entry, str):
        return entry, None
    if isinstance(entry, dict) and len(entry) == 1:
        (tag, payload), = entry.items()
        return str(tag), payload
    raise FilterConfigError(
        f"Filter entries must be a tag string or a single-key mapping, got {entry!r}"
    )


def _pair(tag: str, payload: Any) -> Tuple[Any, Any]:
    if not isinstance(payload, (list, tuple)) or len(payload) != 2:
        raise FilterConfigError(f"{tag}: expected a two-element list, got {payload!r}")
    return payload[0], payload[1]


def peptide_filter_from_config(entry: Any) -> PeptideFilter:
    """
    Decode one peptide filter entry.

    Valid tags:
        - "Unique", "Tryptic" (bare)
        - {"TotalIntensity": threshold}
        - {"ChannelIntensity": [channel, threshold]}
        - {"ChannelCV": [[channels...], threshold]}
        - {"SequenceContains": pattern}, {"SequenceExcludes": pattern}
    """
    tag, payload = _split_tagged(entry)

    if tag in ("Unique", "Tryptic"):
        if payload is not None:
            raise FilterConfigError(f"{tag} takes no parameter, got {payload!r}")
        return Unique() if tag == "Unique" else Tryptic()
    if payload is None:
        raise FilterConfigError(f"{tag} requires a parameter")

    if tag == "TotalIntensity":
        return TotalIntensity(_number(tag, payload))
    elif tag == "ChannelIntensity":
        channel, threshold = _pair(tag, payload)
        return ChannelIntensity(_channel(tag, channel), _number(tag, threshold))
    elif tag == "ChannelCV":
        channels, threshold = _pair(tag, payload)
        if not isinstance(channels, (list, tuple)) or not channels:
            raise FilterConfigError(f"{tag}: expected a non-empty channel list, got {channels!r}")
        return ChannelCV(tuple(_channel(tag, c) for c in channels), _number(tag, threshold))
    elif tag == "SequenceContains":
        return SequenceContains(_pattern(tag, payload))
    elif tag == "SequenceExcludes":
        return SequenceExcludes(_pattern(tag, payload))
    else:
        raise FilterConfigError(
            f"Unknown peptide filter: {tag!r}. Options: Unique, Tryptic, TotalIntensity, "
            "ChannelIntensity, ChannelCV, SequenceContains, SequenceExcludes"
        )


def protein_filter_from_config(entry: Any) -> ProteinFilter:
    """
    Decode one protein filter entry.

    Valid tags:
        - "ExcludeReverse" (bare)
        - {"SequenceCounts": n}
        - {"SpectralCounts": n}
    """
    tag, payload = _split_tagged(entry)

    if tag == "ExcludeReverse":
        if payload is not None:
            raise FilterConfigError(f"{tag} takes no parameter, got {payload!r}")
        return ExcludeReverse()
    elif tag == "SequenceCounts":
        return SequenceCounts(_count(tag, payload))
    elif tag == "SpectralCounts":
        return SpectralCounts(_count(tag, payload))
    else:
        raise FilterConfigError(
            f"Unknown protein filter: {tag!r}. Options: ExcludeReverse, SequenceCounts, SpectralCounts"
        )


@dataclass
class Filter:
    """Named, ordered set of peptide and protein filters. Empty means pass everything."""
    name: str = "default"
    peptide_filters: List[PeptideFilter] = field(default_factory=list)
    protein_filters: List[ProteinFilter] = field(default_factory=list)

    def add_peptide_filter(self, f: PeptideFilter) -> "Filter":
        self.peptide_filters.append(f)
        return self

    def add_protein_filter(self, f: ProteinFilter) -> "Filter":
        self.protein_filters.append(f)
        return self

    @property
    def is_identity(self) -> bool:
        return not self.peptide_filters and not self.protein_filters

    def check_channels(self, channels: int) -> None:
        """Raise FilterConfigError when a channel parameter exceeds `channels`."""
        for f in self.peptide_filters:
            check = getattr(f, "check_channels", None)
            if check is not None:
                check(channels)

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "peptide_filters": [f.to_config() for f in self.peptide_filters],
            "protein_filters": [f.to_config() for f in self.protein_filters],
        }

    @classmethod
    def from_dict(cls, doc: Any) -> "Filter":
        if doc is None:
            return cls()
        if not isinstance(doc, dict):
            raise FilterConfigError(f"Filter document must be a mapping, got {type(doc).__name__}")

        unknown = set(doc) - {"name", "peptide_filters", "protein_filters"}
        if unknown:
            raise FilterConfigError(f"Unknown filter document keys: {sorted(unknown)!r}")

        def _entries(key):
            raw = doc.get(key) or []
            if not isinstance(raw, list):
                raise FilterConfigError(f"'{key}' must be a list, got {raw!r}")
            return raw

        return cls(
            name=str(doc.get("name") or "default"),
            peptide_filters=[peptide_filter_from_config(e) for e in _entries("peptide_filters")],
            protein_filters=[protein_filter_from_config(e) for e in _entries("protein_filters")],
        )


def load_filter(path: Union[str, Path, None]) -> Filter:
    """Read a JSON or YAML filter document. No path means the identity filter."""
    if path is None:
        return Filter()
    path = Path(path)
    try:
        doc = yaml.safe_load(path.read_text())
    except OSError as e:
        raise FilterConfigError(f"Cannot read {path}: {e}") from e
    except yaml.YAMLError as e:
        raise FilterConfigError(f"Error while parsing {path}: {e}") from e
    return Filter.from_dict(doc)


def save_filter(flt: Filter, path: Union[str, Path]) -> Path:
    path = Path(path)
    doc = flt.to_dict()
    if path.suffix.lower() in (".yaml", ".yml"):
        path.write_text(yaml.safe_dump(doc, sort_keys=False, default_flow_style=None))
    else:
        path.write_text(json.dumps(doc, indent=2) + "\n")
    return path


def example_filter() -> Filter:
    return (
        Filter(name="example")
        .add_peptide_filter(ChannelIntensity(1, 1000))
        .add_peptide_filter(ChannelCV((1, 2), 0.6))
        .add_peptide_filter(Unique())
        .add_peptide_filter(Tryptic())
        .add_peptide_filter(TotalIntensity(5000))
        .add_protein_filter(ExcludeReverse())
        .add_protein_filter(SequenceCounts(2))
    )
