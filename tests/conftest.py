import pytest

from censusflux.dataset.census import Dataset, Peptide, Protein

PLINE = "\t".join(
    ["H", "PLINE", "LOCUS", "SPEC_COUNT", "SEQ_COUNT", "SEQ_COVERAGE", "LENGTH", "MOLWT", "PI", "DESCRIPTION"]
)
SLINE = "\t".join(
    [
        "H", "SLINE", "UNIQUE", "SEQUENCE",
        "m/z_126.127726_int", "norm_m/z_126.127726_int",
        "m/z_127.124761_int", "norm_m/z_127.124761_int",
        "SpC", "ScanNum",
    ]
)


def p_line(accession, spec, seq, description):
    return "\t".join(["P", accession, str(spec), str(seq), "10.0%", "120", "13000", "5.4", description])


def s_line(unique, sequence, c1, c2, scan=100):
    return "\t".join(["S", unique, sequence, str(c1), "0.5", str(c2), "0.5", "1", str(scan)])


CENSUS_TEXT = "\n".join(
    [
        "H\tCensus version 2.51",
        "H\tTMT 2-plex",
        PLINE,
        SLINE,
        p_line("sp|P1|ONE_HUMAN", 3, 2, "Protein one, isoform 2"),
        s_line("U", "K.AAAK.R", 10, 20, 101),
        s_line("U", "K.AAAK.R", 5, 5, 102),
        s_line("", "R.BBBR.-", 100, 200, 103),
        p_line("sp|P2|TWO_HUMAN", 2, 1, "Protein two"),
        p_line("sp|P3|THREE_HUMAN", 2, 1, "Protein three"),
        s_line("U", "-.CCCK.L", 7, 9, 104),
        s_line("*", "L.DDDA.G", 0, 0, 105),
        p_line("Reverse_sp|P4|FOUR_HUMAN", 1, 1, "Decoy four"),
        s_line("U", "K.EEEK.A", 50, 50, 106),
        "",
    ]
)


@pytest.fixture
def census_text():
    return CENSUS_TEXT


@pytest.fixture
def census_file(tmp_path):
    path = tmp_path / "sample.txt"
    path.write_text(CENSUS_TEXT)
    return path


def pep(seq, values, unique=True, tryptic=True, reverse=False):
    return Peptide(sequence=seq, values=list(values), unique=unique, tryptic=tryptic, reverse=reverse)


@pytest.fixture
def scenario_dataset():
    """Two channels, one protein P1 with AAA twice and BBB once."""
    return Dataset(
        channels=2,
        proteins=[
            Protein(
                accession="P1",
                description="first, protein",
                spectral_count=3,
                sequence_count=2,
                peptides=[pep("AAA", [10, 20]), pep("AAA", [5, 5]), pep("BBB", [100, 200])],
            )
        ],
    )


@pytest.fixture
def mixed_dataset():
    return Dataset(
        channels=3,
        proteins=[
            Protein(
                accession="P1",
                description="alpha",
                spectral_count=4,
                sequence_count=3,
                peptides=[
                    pep("K.AAK.R", [100, 100, 100]),
                    pep("K.AAK.R", [50, 60, 70], unique=False),
                    pep("K.BBK.R", [1000, 10, 10], tryptic=False),
                    pep("K.CCK.R", [0, 0, 0]),
                ],
            ),
            Protein(
                accession="Reverse_P2",
                description="decoy",
                spectral_count=1,
                sequence_count=1,
                peptides=[pep("K.DDK.R", [300, 300, 300], reverse=True)],
                reverse=True,
            ),
            Protein(
                accession="P3",
                description="gamma",
                spectral_count=1,
                sequence_count=1,
                peptides=[pep("K.EEK.R", [1, 2, 3], unique=False)],
            ),
            Protein(accession="P4", description="no peptides", spectral_count=0, sequence_count=0),
        ],
    )
