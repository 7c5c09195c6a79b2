from pathlib import Path

import pytest

from pipelines.model import ObservationRecord

HEADER = ",".join(f"col{index}" for index in range(36))
MEASURE_BASE = "http://statistics.gov.scot/def/measure-properties"


def make_row(
    datazone=("DZ001", "DataZoneA"),
    ward=("W01", "WardOne"),
    council=("C01", "CouncilOne"),
    country=("COUNTRY1", "Scotland"),
    columns: int = 36,
    quoted: bool = False,
) -> str:
    fields = [""] * columns
    placements = {
        2: datazone[0],
        3: datazone[1],
        4: ward[0],
        5: ward[1],
        6: council[0],
        7: council[1],
        34: country[0],
        35: country[1],
    }
    for index, value in placements.items():
        if index < columns:
            fields[index] = value
    if quoted:
        fields = [f'"{value}"' for value in fields]
    return ",".join(fields)


def observation(period: str, measure: str, value: str) -> ObservationRecord:
    return ObservationRecord(period=period, measure=f"{MEASURE_BASE}/{measure}", value=value)


@pytest.fixture()
def geography_lines():
    return [
        HEADER,
        make_row(),
        make_row(datazone=("DZ002", "DataZoneB")),
        make_row(datazone=("DZ003", "DataZoneC"), ward=("W02", "WardTwo")),
        make_row(datazone=("DZ004", "DataZoneD"), ward=("W03", "WardThree")),
        make_row(
            datazone=("DZ005", "DataZoneE"),
            ward=("W10", "WardTen"),
            council=("C02", "CouncilTwo"),
        ),
    ]


@pytest.fixture()
def geography_csv(tmp_path: Path, geography_lines) -> Path:
    path = tmp_path / "DataZone2022.csv"
    path.write_text("\n".join(geography_lines) + "\n", encoding="utf-8")
    return path
