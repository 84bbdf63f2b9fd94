from dataclasses import dataclass, field, replace
from typing import List, Optional

import numpy as np
import polars as pl

from censusflux.utils.semantics import channel_columns


@dataclass
class Peptide:
    sequence: str
    values: List[int]
    unique: bool = False
    tryptic: bool = False
    reverse: bool = False

    def total_intensity(self) -> int:
        return int(np.sum(self.values, dtype=np.int64))


@dataclass
class Protein:
    accession: str
    description: str
    spectral_count: int
    sequence_count: int
    peptides: List[Peptide] = field(default_factory=list)
    reverse: bool = False

    def total(self, channels: Optional[int] = None) -> List[int]:
        """Element-wise sum of all peptide channel vectors.

        A protein without peptides has no vector to infer the width from, so
        `channels` sets the length of the all-zero result in that case.
        """
        if not self.peptides:
            return [0] * (channels or 0)
        mat = np.asarray([p.values for p in self.peptides], dtype=np.int64)
        return [int(v) for v in mat.sum(axis=0)]

    def distinct_sequences(self) -> int:
        return len({p.sequence for p in self.peptides})

    def with_peptides(self, peptides: List[Peptide]) -> "Protein":
        return replace(self, peptides=list(peptides))


@dataclass
class Dataset:
    """One parsed census file: a fixed channel count and its proteins in file order."""
    channels: int
    proteins: List[Protein] = field(default_factory=list)

    def __post_init__(self):
        if self.channels < 1:
            raise ValueError(f"channels must be positive, got {self.channels}")

    def validate(self) -> None:
        """Raise ValueError when a peptide vector does not match `channels`."""
        for prot in self.proteins:
            for pep in prot.peptides:
                if len(pep.values) != self.channels:
                    raise ValueError(
                        f"Peptide {pep.sequence} of {prot.accession} has {len(pep.values)} "
                        f"values, expected {self.channels}"
                    )

    @property
    def num_peptides(self) -> int:
        return sum(len(p.peptides) for p in self.proteins)

    def to_peptide_frame(self) -> pl.DataFrame:
        """Long peptide table with protein metadata, one row per peptide, file order."""
        cols = channel_columns(self.channels)
        schema = {
            "PROTEIN_IDX": pl.Int64,
            "accession": pl.Utf8,
            "description": pl.Utf8,
            "spectral_count": pl.Int64,
            "sequence_count": pl.Int64,
            "sequence": pl.Utf8,
            **{c: pl.Int64 for c in cols},
        }
        records = {k: [] for k in schema}
        for idx, prot in enumerate(self.proteins):
            for pep in prot.peptides:
                records["PROTEIN_IDX"].append(idx)
                records["accession"].append(prot.accession)
                records["description"].append(prot.description)
                records["spectral_count"].append(prot.spectral_count)
                records["sequence_count"].append(prot.sequence_count)
                records["sequence"].append(pep.sequence)
                for c, v in zip(cols, pep.values):
                    records[c].append(int(v))
        return pl.DataFrame(records, schema=schema)

    def to_protein_frame(self) -> pl.DataFrame:
        """Protein metadata table, one row per protein, file order."""
        schema = {
            "PROTEIN_IDX": pl.Int64,
            "accession": pl.Utf8,
            "description": pl.Utf8,
            "spectral_count": pl.Int64,
            "sequence_count": pl.Int64,
            "N_PEPTIDES": pl.Int64,
            "N_SEQUENCES": pl.Int64,
        }
        return pl.DataFrame(
            {
                "PROTEIN_IDX": list(range(len(self.proteins))),
                "accession": [p.accession for p in self.proteins],
                "description": [p.description for p in self.proteins],
                "spectral_count": [p.spectral_count for p in self.proteins],
                "sequence_count": [p.sequence_count for p in self.proteins],
                "N_PEPTIDES": [len(p.peptides) for p in self.proteins],
                "N_SEQUENCES": [p.distinct_sequences() for p in self.proteins],
            },
            schema=schema,
        )
