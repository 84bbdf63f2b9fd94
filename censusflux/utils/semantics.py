"""
Canonical semantics for censusflux.

This module is intentionally small and declarative:
  - Canonical combine modes (and their accepted aliases)
  - Canonical aggregation option values
  - Output column names shared by the reducers and the exporter
"""

MODES_CANONICAL = ("protein", "peptide", "flat")

MODE_ALIASES = {
    "protein": "protein",
    "proteins": "protein",
    "combine_protein": "protein",
    "peptide": "peptide",
    "peptides": "peptide",
    "combine_peptide": "peptide",
    "flat": "flat",
    "flat_peptide": "flat",
}

# peptide-combine spectral_count column
PEPTIDE_SPECTRAL_COUNT_MERGED = "merged"
PEPTIDE_SPECTRAL_COUNT_PROTEIN = "protein"
PEPTIDE_SPECTRAL_COUNT_CHOICES = (PEPTIDE_SPECTRAL_COUNT_MERGED, PEPTIDE_SPECTRAL_COUNT_PROTEIN)

# protein-combine spectral_count / sequence_count columns
PROTEIN_COUNTS_PARSED = "parsed"
PROTEIN_COUNTS_FILTERED = "filtered"
PROTEIN_COUNTS_CHOICES = (PROTEIN_COUNTS_PARSED, PROTEIN_COUNTS_FILTERED)

# Prefix marking decoy accessions in census output
REVERSE_PREFIX = "Reverse_"

MODE_HEADERS = {
    "protein": ("accession", "description", "spectral_count", "sequence_count"),
    "peptide": ("accession", "description", "spectral_count", "sequence"),
    "flat": ("accession", "description", "sequence"),
}


def channel_columns(channels: int) -> list[str]:
    return [f"channel_{i}" for i in range(1, channels + 1)]


def normalize_mode(raw) -> str:
    """Map a user-supplied mode string onto one of MODES_CANONICAL."""
    if raw is None:
        raise ValueError("A combine mode is required: one of 'protein', 'peptide', 'flat'.")
    key = str(raw).strip().lower()
    if key not in MODE_ALIASES:
        raise ValueError(
            f"Unsupported mode={raw!r}. Use one of: 'protein', 'peptide', 'flat'."
        )
    return MODE_ALIASES[key]
