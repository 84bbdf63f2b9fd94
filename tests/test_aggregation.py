import polars as pl
import pytest

from censusflux.dataset.census import Dataset, Peptide, Protein
from censusflux.workflow.aggregation import (
    AggregationOptions,
    aggregate,
    combine_peptide,
    combine_protein,
    flat,
    header_row,
    to_rows,
)
from censusflux.workflow.filtering import apply_filter
from censusflux.workflow.filters import Filter, TotalIntensity


def test_headers():
    assert header_row("protein", 2) == [
        "accession", "description", "spectral_count", "sequence_count", "channel_1", "channel_2"
    ]
    assert header_row("peptide", 1) == ["accession", "description", "spectral_count", "sequence", "channel_1"]
    assert header_row("flat", 3) == ["accession", "description", "sequence", "channel_1", "channel_2", "channel_3"]


@pytest.mark.parametrize("mode", ["protein", "peptide", "flat"])
def test_frame_columns_match_header(mixed_dataset, mode):
    frame = aggregate(mixed_dataset, mode)
    assert frame.columns == header_row(mode, mixed_dataset.channels)


@pytest.mark.parametrize("mode", ["protein", "peptide", "flat"])
def test_empty_dataset_yields_header_only(mode):
    frame = aggregate(Dataset(channels=2), mode, AggregationOptions(average=True))
    assert frame.height == 0
    assert frame.columns == header_row(mode, 2)


def test_protein_average_scenario(scenario_dataset):
    frame = combine_protein(scenario_dataset, AggregationOptions(average=True))
    assert frame.rows() == [("P1", "first; protein", 3, 2, 38, 75)]
    assert to_rows(frame) == [["P1", "first; protein", "3", "2", "38", "75"]]


def test_protein_float_average(scenario_dataset):
    frame = combine_protein(scenario_dataset, AggregationOptions(average=True, integer_division=False))
    row = frame.row(0)
    assert row[4] == pytest.approx(115 / 3)
    assert row[5] == pytest.approx(225 / 3)


def test_protein_sum(scenario_dataset):
    frame = combine_protein(scenario_dataset)
    assert frame.rows() == [("P1", "first; protein", 3, 2, 115, 225)]


def test_protein_sum_conserves_single_peptide_values():
    ds = Dataset(
        channels=3,
        proteins=[
            Protein("A", "a", 1, 1, peptides=[Peptide("X", [3, 1, 4])]),
            Protein("B", "b", 1, 1, peptides=[Peptide("Y", [1, 5, 9])]),
        ],
    )
    frame = combine_protein(ds)
    assert frame.select(["channel_1", "channel_2", "channel_3"]).rows() == [(3, 1, 4), (1, 5, 9)]


def test_protein_average_is_sum_over_count(mixed_dataset):
    sums = combine_protein(mixed_dataset)
    avgs = combine_protein(mixed_dataset, AggregationOptions(average=True))
    for prot, s, a in zip(mixed_dataset.proteins, sums.iter_rows(named=True), avgs.iter_rows(named=True)):
        k = len(prot.peptides)
        for c in ("channel_1", "channel_2", "channel_3"):
            assert a[c] == (s[c] // k if k else 0)


def test_protein_without_peptides_averages_to_zero(mixed_dataset):
    frame = combine_protein(mixed_dataset, AggregationOptions(average=True))
    last = frame.row(3, named=True)
    assert last["accession"] == "P4"
    assert (last["channel_1"], last["channel_2"], last["channel_3"]) == (0, 0, 0)


def test_protein_counts_parsed_or_filtered(mixed_dataset):
    filtered = apply_filter(mixed_dataset, Filter(peptide_filters=[TotalIntensity(200)]))
    parsed = combine_protein(filtered)
    recounted = combine_protein(filtered, AggregationOptions(protein_counts="filtered"))
    assert parsed.row(0)[2:4] == (4, 3)
    assert recounted.row(0)[2:4] == (2, 2)


def test_peptide_combine_scenario(scenario_dataset):
    filtered = apply_filter(scenario_dataset, Filter(peptide_filters=[TotalIntensity(20)]))
    frame = combine_peptide(filtered)
    assert sorted(to_rows(frame)) == [
        ["P1", "first; protein", "1", "AAA", "10", "20"],
        ["P1", "first; protein", "1", "BBB", "100", "200"],
    ]


def test_peptide_combine_merges_and_averages(scenario_dataset):
    summed = {r[3]: r for r in combine_peptide(scenario_dataset).rows()}
    assert summed["AAA"][2] == 2
    assert summed["AAA"][4:] == (15, 25)

    averaged = {r[3]: r for r in combine_peptide(scenario_dataset, AggregationOptions(average=True)).rows()}
    assert averaged["AAA"][4:] == (7, 12)
    assert averaged["BBB"][4:] == (100, 200)

    floats = {
        r[3]: r for r in combine_peptide(
            scenario_dataset, AggregationOptions(average=True, integer_division=False)
        ).rows()
    }
    assert floats["AAA"][4:] == (7.5, 12.5)


def test_peptide_combine_protein_spectral_count(scenario_dataset):
    frame = combine_peptide(scenario_dataset, AggregationOptions(peptide_spectral_count="protein"))
    assert set(frame["spectral_count"].to_list()) == {3}


def test_peptide_groups_are_per_protein():
    shared = [Peptide("SAME", [1, 1]), Peptide("SAME", [2, 2])]
    ds = Dataset(
        channels=2,
        proteins=[
            Protein("A", "a", 2, 1, peptides=list(shared)),
            Protein("B", "b", 1, 1, peptides=[Peptide("SAME", [4, 4])]),
        ],
    )
    frame = combine_peptide(ds)
    assert frame.select(["accession", "spectral_count", "channel_1"]).rows() == [("A", 2, 3), ("B", 1, 4)]


def test_peptide_grouping_is_complete(mixed_dataset):
    frame = combine_peptide(mixed_dataset)
    for prot in mixed_dataset.proteins:
        rows = frame.filter(pl.col("accession") == prot.accession)
        assert rows["spectral_count"].sum() == len(prot.peptides)
        assert rows["sequence"].n_unique() == rows.height == prot.distinct_sequences()
        totals = prot.total(mixed_dataset.channels)
        for i, c in enumerate(("channel_1", "channel_2", "channel_3")):
            assert rows[c].sum() == totals[i]


def test_flat_ignores_average(mixed_dataset):
    plain = flat(mixed_dataset)
    averaged = flat(mixed_dataset, AggregationOptions(average=True))
    assert plain.equals(averaged)
    assert plain.height == mixed_dataset.num_peptides
    assert plain.row(1) == ("P1", "alpha", "K.AAK.R", 50, 60, 70)


def test_invalid_options():
    with pytest.raises(ValueError):
        AggregationOptions(peptide_spectral_count="both")
    with pytest.raises(ValueError):
        AggregationOptions(protein_counts="some")


def test_unknown_mode(mixed_dataset):
    with pytest.raises(ValueError):
        aggregate(mixed_dataset, "gene")
