"""Collapse a filtered Dataset into row-oriented output tables.

Three reducers, one per combine mode:
1) ``combine_protein``: one row per protein, channel totals (or averages)
2) ``combine_peptide``: one row per distinct sequence within each protein
3) ``flat``: one row per peptide, raw channel values

Each returns a ``polars.DataFrame`` whose columns are exactly the output header.
Averages divide by the number of contributing peptide entries; with zero
contributors the averaged channel is 0.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import List

import polars as pl

from censusflux.dataset.census import Dataset
from censusflux.utils.semantics import (
    MODE_HEADERS,
    PEPTIDE_SPECTRAL_COUNT_CHOICES,
    PEPTIDE_SPECTRAL_COUNT_MERGED,
    PROTEIN_COUNTS_CHOICES,
    PROTEIN_COUNTS_PARSED,
    channel_columns,
    normalize_mode,
)
from censusflux.utils.utils import log_info, log_time


@dataclass
class AggregationOptions:
    average: bool = False
    integer_division: bool = True
    peptide_spectral_count: str = PEPTIDE_SPECTRAL_COUNT_MERGED
    protein_counts: str = PROTEIN_COUNTS_PARSED

    def __post_init__(self):
        if self.peptide_spectral_count not in PEPTIDE_SPECTRAL_COUNT_CHOICES:
            raise ValueError(
                f"peptide_spectral_count must be one of {PEPTIDE_SPECTRAL_COUNT_CHOICES}, "
                f"got {self.peptide_spectral_count!r}"
            )
        if self.protein_counts not in PROTEIN_COUNTS_CHOICES:
            raise ValueError(
                f"protein_counts must be one of {PROTEIN_COUNTS_CHOICES}, got {self.protein_counts!r}"
            )

    @classmethod
    def from_dict(cls, cfg: dict | None) -> "AggregationOptions":
        cfg = cfg or {}
        return cls(
            average=bool(cfg.get("average", False)),
            integer_division=bool(cfg.get("integer_division", True)),
            peptide_spectral_count=str(cfg.get("peptide_spectral_count", PEPTIDE_SPECTRAL_COUNT_MERGED)).lower(),
            protein_counts=str(cfg.get("protein_counts", PROTEIN_COUNTS_PARSED)).lower(),
        )


def header_row(mode: str, channels: int) -> List[str]:
    mode = normalize_mode(mode)
    return list(MODE_HEADERS[mode]) + channel_columns(channels)


def to_rows(frame: pl.DataFrame) -> List[List[str]]:
    """Stringify every field, row by row, in column order."""
    return [[str(v) for v in row] for row in frame.iter_rows()]


def _escape_description() -> pl.Expr:
    return pl.col("description").str.replace_all(",", ";", literal=True)


def _averaged(col: str, count_col: str, integer_division: bool) -> pl.Expr:
    n = pl.col(count_col)
    if integer_division:
        value = pl.col(col) // n
        fallback = pl.lit(0, dtype=pl.Int64)
    else:
        value = pl.col(col).cast(pl.Float64) / n
        fallback = pl.lit(0.0)
    return pl.when(n > 0).then(value).otherwise(fallback).alias(col)


@log_time("Combine by protein")
def combine_protein(dataset: Dataset, options: AggregationOptions | None = None) -> pl.DataFrame:
    options = options or AggregationOptions()
    cols = channel_columns(dataset.channels)

    proteins = dataset.to_protein_frame()
    sums = (
        dataset.to_peptide_frame()
        .group_by("PROTEIN_IDX", maintain_order=True)
        .agg([pl.col(c).sum() for c in cols])
    )

    df = (
        proteins.join(sums, on="PROTEIN_IDX", how="left")
        .sort("PROTEIN_IDX")
        .with_columns([pl.col(c).fill_null(0) for c in cols])
    )

    if options.average:
        df = df.with_columns([_averaged(c, "N_PEPTIDES", options.integer_division) for c in cols])

    if options.protein_counts == PROTEIN_COUNTS_PARSED:
        counts = [pl.col("spectral_count"), pl.col("sequence_count")]
    else:
        counts = [
            pl.col("N_PEPTIDES").alias("spectral_count"),
            pl.col("N_SEQUENCES").alias("sequence_count"),
        ]

    out = df.select(
        [pl.col("accession"), _escape_description()] + counts + [pl.col(c) for c in cols]
    )
    log_info(f"{out.height} protein row(s), average={options.average}.")
    return out


@log_time("Combine by peptide")
def combine_peptide(dataset: Dataset, options: AggregationOptions | None = None) -> pl.DataFrame:
    options = options or AggregationOptions()
    cols = channel_columns(dataset.channels)

    grouped = (
        dataset.to_peptide_frame()
        .group_by(["PROTEIN_IDX", "sequence"], maintain_order=True)
        .agg(
            [
                pl.first("accession"),
                pl.first("description"),
                pl.first("spectral_count"),
                pl.len().cast(pl.Int64).alias("SPEC"),
            ]
            + [pl.col(c).sum() for c in cols]
        )
    )

    if options.average:
        grouped = grouped.with_columns([_averaged(c, "SPEC", options.integer_division) for c in cols])

    if options.peptide_spectral_count == PEPTIDE_SPECTRAL_COUNT_MERGED:
        spec = pl.col("SPEC").alias("spectral_count")
    else:
        spec = pl.col("spectral_count")

    out = grouped.select(
        [pl.col("accession"), _escape_description(), spec, pl.col("sequence")]
        + [pl.col(c) for c in cols]
    )
    log_info(f"{out.height} peptide-sequence row(s), average={options.average}.")
    return out


@log_time("Flat peptides")
def flat(dataset: Dataset, options: AggregationOptions | None = None) -> pl.DataFrame:
    # averaging a single entry is a no-op, so `options` is accepted and ignored
    cols = channel_columns(dataset.channels)
    out = dataset.to_peptide_frame().select(
        [pl.col("accession"), _escape_description(), pl.col("sequence")]
        + [pl.col(c) for c in cols]
    )
    log_info(f"{out.height} peptide row(s).")
    return out


REDUCERS = {
    "protein": combine_protein,
    "peptide": combine_peptide,
    "flat": flat,
}


def aggregate(dataset: Dataset, mode: str, options: AggregationOptions | None = None) -> pl.DataFrame:
    """Dispatch to the reducer for `mode` ('protein', 'peptide' or 'flat')."""
    return REDUCERS[normalize_mode(mode)](dataset, options)
