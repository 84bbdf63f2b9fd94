from typing import Dict, List

from censusflux.dataset.census import Dataset, Protein
from censusflux.workflow.filters import Filter
from censusflux.utils.utils import log_info, log_time


def _peptide_pass_counts(dataset: Dataset, flt: Filter) -> Dict[str, int]:
    """Per-filter number of peptides that would be rejected (for logging only)."""
    dropped = {repr(f): 0 for f in flt.peptide_filters}
    for prot in dataset.proteins:
        for pep in prot.peptides:
            for f in flt.peptide_filters:
                if not f.passes(pep, dataset.channels):
                    dropped[repr(f)] += 1
    return dropped


@log_time("Filtering")
def apply_filter(dataset: Dataset, flt: Filter, drop_empty: bool = True) -> Dataset:
    """
    Return a new Dataset holding only the peptides and proteins that pass `flt`.

    Peptides are kept when every peptide filter passes. Protein filters then see
    the pruned protein. Parser-supplied spectral/sequence counts are carried over
    untouched. With `drop_empty`, a protein emptied by peptide filtering is dropped;
    a protein that arrived without peptides is left alone.

    Raises:
        FilterConfigError: a channel parameter exceeds `dataset.channels`.
    """
    flt.check_channels(dataset.channels)

    if flt.is_identity:
        log_info("No filters configured: passing dataset through.")
        return Dataset(
            channels=dataset.channels,
            proteins=[p.with_peptides(p.peptides) for p in dataset.proteins],
        )

    n_pep_before = dataset.num_peptides
    if flt.peptide_filters:
        for name, n in _peptide_pass_counts(dataset, flt).items():
            log_info(f"{name}: rejects {n}/{n_pep_before} peptide(s).")

    kept: List[Protein] = []
    emptied = 0
    rejected = 0
    for prot in dataset.proteins:
        peptides = [
            pep for pep in prot.peptides
            if all(f.passes(pep, dataset.channels) for f in flt.peptide_filters)
        ]
        pruned = prot.with_peptides(peptides)

        if drop_empty and prot.peptides and not peptides:
            emptied += 1
            continue
        if not all(f.passes(pruned) for f in flt.protein_filters):
            rejected += 1
            continue
        kept.append(pruned)

    out = Dataset(channels=dataset.channels, proteins=kept)
    log_info(
        f"Peptides: kept={out.num_peptides} dropped={n_pep_before - out.num_peptides}; "
        f"proteins: kept={len(kept)} emptied={emptied} rejected={rejected}."
    )
    return out
