"""Parser for census_out text files (multiplexed TMT quantification).

Layout, tab separated:
  H  ...                    free header lines
  H  PLINE  LOCUS  SPEC_COUNT  SEQ_COUNT ... DESCRIPTION
  H  SLINE  UNIQUE  SEQUENCE  m/z_126.127726_int ... norm_m/z_126.127726_int ...
  P  <protein fields>       consecutive P lines form one protein group
  S  <peptide fields>       belong to every protein of the preceding group
"""
import math
import re
from pathlib import Path
from typing import Dict, List, Optional, Union

from censusflux.dataset.census import Dataset, Peptide, Protein
from censusflux.utils.semantics import REVERSE_PREFIX
from censusflux.utils.utils import log_info, log_time

_RE_REPORTER = re.compile(r"^m/z_[\d.]+_int$")

_PROTEIN_REQUIRED = ("LOCUS", "SPEC_COUNT", "SEQ_COUNT", "DESCRIPTION")
_PEPTIDE_REQUIRED = ("UNIQUE", "SEQUENCE")


class CensusParseError(ValueError):
    def __init__(self, msg: str, line: Optional[int] = None):
        self.line = line
        super().__init__(f"line {line}: {msg}" if line is not None else msg)


def is_tryptic(sequence: str) -> bool:
    """Fully tryptic check on a flanked sequence like ``K.PEPTIDER.A``.

    Protein termini are written as ``-``. Unflanked sequences only need the
    C-terminal K/R.
    """
    parts = sequence.split(".")
    if len(parts) >= 3:
        before, core, after = parts[0], ".".join(parts[1:-1]), parts[-1]
    else:
        before, core, after = "-", sequence, ""
    core = re.sub(r"\([^)]*\)|\[[^\]]*\]", "", core)
    if not core:
        return False
    n_term = before[-1:] in ("K", "R", "-")
    c_term = core[-1] in ("K", "R") or after == "-"
    return n_term and c_term


def _parse_int(raw: str, what: str, lineno: int) -> int:
    try:
        value = float(raw)
    except ValueError:
        raise CensusParseError(f"{what} is not numeric: {raw!r}", lineno) from None
    if not math.isfinite(value) or value < 0:
        raise CensusParseError(f"{what} must be a non-negative number: {raw!r}", lineno)
    return int(value)


def _header_index(fields: List[str], required, kind: str, lineno: int) -> Dict[str, int]:
    index = {name: i for i, name in enumerate(fields)}
    missing = [c for c in required if c not in index]
    if missing:
        raise CensusParseError(f"{kind} header lacks columns {missing!r}", lineno)
    return index


@log_time("Census parsing")
def read_census(text: str) -> Dataset:
    """Parse census_out text into a Dataset.

    Raises:
        CensusParseError: on any structural or numeric problem, with the line number.
    """
    p_index: Optional[Dict[str, int]] = None
    s_index: Optional[Dict[str, int]] = None
    reporter_cols: List[int] = []

    proteins: List[Protein] = []
    group: List[Protein] = []
    group_open = False  # True while consecutive P lines are accumulating

    for lineno, line in enumerate(text.splitlines(), start=1):
        if not line.strip():
            continue
        fields = line.rstrip("\r\n").split("\t")
        kind = fields[0]

        if kind == "H":
            if len(fields) > 1 and fields[1] == "PLINE":
                # P rows start with "P" where the header has "H PLINE"
                p_index = _header_index(fields[1:], _PROTEIN_REQUIRED, "PLINE", lineno)
            elif len(fields) > 1 and fields[1] == "SLINE":
                s_index = _header_index(fields[1:], _PEPTIDE_REQUIRED, "SLINE", lineno)
                reporter_cols = [i for i, name in enumerate(fields[1:]) if _RE_REPORTER.match(name)]
                if not reporter_cols:
                    raise CensusParseError("SLINE header has no m/z_*_int reporter columns", lineno)
            continue

        if kind == "P":
            if p_index is None:
                raise CensusParseError("P line before the PLINE header", lineno)
            if not group_open:
                group = []
                group_open = True
            row = fields
            if len(row) < len(p_index):
                raise CensusParseError(
                    f"P line has {len(row)} fields, header declares {len(p_index)}", lineno
                )
            accession = row[p_index["LOCUS"]]
            prot = Protein(
                accession=accession,
                description=row[p_index["DESCRIPTION"]],
                spectral_count=_parse_int(row[p_index["SPEC_COUNT"]], "SPEC_COUNT", lineno),
                sequence_count=_parse_int(row[p_index["SEQ_COUNT"]], "SEQ_COUNT", lineno),
                reverse=accession.startswith(REVERSE_PREFIX),
            )
            group.append(prot)
            proteins.append(prot)
            continue

        if kind == "S":
            if s_index is None:
                raise CensusParseError("S line before the SLINE header", lineno)
            if not group:
                raise CensusParseError("S line before any P line", lineno)
            group_open = False
            row = fields
            if len(row) < len(s_index):
                raise CensusParseError(
                    f"S line has {len(row)} fields, header declares {len(s_index)}", lineno
                )
            sequence = row[s_index["SEQUENCE"]]
            values = [_parse_int(row[i], f"intensity column {i}", lineno) for i in reporter_cols]
            unique = row[s_index["UNIQUE"]].strip() in ("U", "*")
            tryptic = is_tryptic(sequence)
            for prot in group:
                prot.peptides.append(
                    Peptide(
                        sequence=sequence,
                        values=list(values),
                        unique=unique,
                        tryptic=tryptic,
                        reverse=prot.reverse,
                    )
                )
            continue

        # other record types (e.g. summary lines) are ignored

    if s_index is None:
        raise CensusParseError("no SLINE header found")

    dataset = Dataset(channels=len(reporter_cols), proteins=proteins)
    log_info(f"Parsed {len(proteins)} protein(s), {dataset.num_peptides} peptide(s), {dataset.channels} channel(s).")
    return dataset


def read_census_file(path: Union[str, Path]) -> Dataset:
    return read_census(Path(path).read_text())
