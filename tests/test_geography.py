import random

from conftest import HEADER, make_row

from pipelines.geography import ColumnLayout, build_hierarchy, split_row


def _structure(hierarchy):
    return {
        country_code: {
            council_code: {
                ward_code: {(dz.code, dz.name) for dz in ward.datazones}
                for ward_code, ward in council.wards.items()
            }
            for council_code, council in country.councils.items()
        }
        for country_code, country in hierarchy.countries.items()
    }


def test_single_row_builds_full_path():
    hierarchy = build_hierarchy([HEADER, make_row()])

    country = hierarchy.countries["COUNTRY1"]
    assert country.name == "Scotland"
    council = country.councils["C01"]
    assert council.name == "CouncilOne"
    ward = council.wards["W01"]
    assert ward.name == "WardOne"
    assert [(dz.code, dz.name) for dz in ward.datazones] == [("DZ001", "DataZoneA")]
    assert hierarchy.summary.valid_rows == 1
    assert hierarchy.summary.rejected_rows == 0


def test_quoted_and_padded_fields_are_trimmed():
    row = make_row(ward=(" W01 ", "WardOne"), quoted=True)

    hierarchy = build_hierarchy([HEADER, row])

    assert list(hierarchy.countries["COUNTRY1"].councils["C01"].wards) == ["W01"]


def test_short_row_is_rejected_and_counted():
    baseline = build_hierarchy([HEADER, make_row()])
    hierarchy = build_hierarchy(
        [HEADER, make_row(), make_row(ward=("W99", "Short"), columns=20)]
    )

    assert hierarchy.summary.rejected_rows == 1
    assert hierarchy.summary.valid_rows == 1
    assert _structure(hierarchy) == _structure(baseline)


def test_row_missing_required_code_is_rejected():
    hierarchy = build_hierarchy(
        [
            HEADER,
            make_row(country=("", "Scotland")),
            make_row(council=("", "Nowhere")),
            make_row(ward=("", "Nameless")),
        ]
    )

    assert hierarchy.is_empty()
    assert hierarchy.summary.rejected_rows == 3
    assert hierarchy.summary.total_rows == 3


def test_thirty_five_columns_is_enough():
    hierarchy = build_hierarchy([HEADER, make_row(columns=35)])

    country = hierarchy.countries["COUNTRY1"]
    assert country.name == ""
    assert "W01" in country.councils["C01"].wards


def test_blank_lines_are_ignored():
    hierarchy = build_hierarchy([HEADER, "", make_row(), "   "])

    assert hierarchy.summary.total_rows == 1
    assert hierarchy.summary.rejected_rows == 0


def test_datazones_deduplicated_first_occurrence_wins():
    hierarchy = build_hierarchy(
        [
            HEADER,
            make_row(datazone=("DZ001", "First")),
            make_row(datazone=("DZ002", "Second")),
            make_row(datazone=("DZ001", "Duplicate")),
        ]
    )

    ward = hierarchy.countries["COUNTRY1"].councils["C01"].wards["W01"]
    assert [(dz.code, dz.name) for dz in ward.datazones] == [
        ("DZ001", "First"),
        ("DZ002", "Second"),
    ]


def test_first_seen_names_win_for_duplicate_codes():
    hierarchy = build_hierarchy(
        [
            HEADER,
            make_row(council=("C01", "Original")),
            make_row(datazone=("DZ002", "B"), council=("C01", "Renamed")),
        ]
    )

    assert hierarchy.countries["COUNTRY1"].councils["C01"].name == "Original"


def test_summary_counts_distinct_codes(geography_lines):
    summary = build_hierarchy(geography_lines).summary

    assert summary.country_count == 1
    assert summary.council_count == 2
    assert summary.ward_count == 4
    assert summary.datazone_count == 5


def test_build_is_order_independent_and_idempotent(geography_lines):
    header, *rows = geography_lines
    shuffled = rows[:]
    random.Random(7).shuffle(shuffled)

    first = build_hierarchy(geography_lines)
    again = build_hierarchy(geography_lines)
    reordered = build_hierarchy([header, *shuffled])

    assert first == again
    assert _structure(first) == _structure(reordered)


def test_find_council_across_countries(geography_lines):
    hierarchy = build_hierarchy(geography_lines)

    assert hierarchy.find_council("C02").name == "CouncilTwo"
    assert hierarchy.find_council("C02", "COUNTRY1").code == "C02"
    assert hierarchy.find_council("C02", "ELSEWHERE") is None
    assert hierarchy.find_council("C99") is None
    assert hierarchy.find_country("COUNTRY1").name == "Scotland"
    assert hierarchy.find_country("ELSEWHERE") is None


def test_custom_layout():
    layout = ColumnLayout(
        datazone_code=0,
        datazone_name=1,
        ward_code=2,
        ward_name=3,
        council_code=4,
        council_name=5,
        country_code=6,
        country_name=7,
        min_columns=8,
    )

    hierarchy = build_hierarchy(
        ["DZ9,Zone,W9,Ward,C9,Council,K9,Country"], layout=layout, has_header=False
    )

    assert hierarchy.countries["K9"].councils["C9"].wards["W9"].datazones[0].code == "DZ9"


def test_split_row_keeps_quoted_commas():
    assert split_row('a, "b, c" ,d') == ["a", "b, c", "d"]
