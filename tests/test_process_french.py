import zipfile

import numpy as np
import pandas as pd
import pytest

from ffroll.download_french import FACTOR_SOURCES
from ffroll.process_french import (
    load_factors_daily,
    parse_french_csv,
    process_all_raw_zips,
    read_factor_zip,
    select_factors,
)

FF3_TEXT = """This file was created by CMPT_ME_BEME_RETS_DAILY using the 202312 CRSP database.
The 1-month TBill return is from Ibbotson and Associates Inc.

,Mkt-RF,SMB,HML,RF
20230103,   -0.71,    0.55,    1.08,   0.017
20230104,    3.00,    0.33,    0.94,   0.017
20230105,   -1.18,    0.06,    1.67,   0.017
20230106,    2.27,  -99.99,   -0.36,   0.017

 Copyright 2023 Kenneth R. French
"""

MOM_DESCRIPTION = [f"Momentum description line {i}" for i in range(13)]
MOM_TEXT = "\n".join(
    MOM_DESCRIPTION
    + [
        ",Mom   ",
        "20230103,   0.50",
        "20230104,  -1.00",
        "20230106,   0.25",
        "",
        " Copyright 2023 Kenneth R. French",
    ]
)


def _write_zip(path, inner_name, text):
    with zipfile.ZipFile(path, "w") as zf:
        zf.writestr(inner_name, text)
    return path


def test_parse_scales_percent_to_decimal():
    df = parse_french_csv(FF3_TEXT, FACTOR_SOURCES["ff3_daily"])

    assert list(df.columns) == ["Mkt-RF", "SMB", "HML", "RF"]
    assert df.index.name == "Date"
    assert df.index[0] == pd.Timestamp("2023-01-03")
    assert len(df) == 4
    assert df.loc["2023-01-04", "Mkt-RF"] == pytest.approx(0.03)
    assert df.loc["2023-01-03", "RF"] == pytest.approx(0.00017)
    assert np.isnan(df.loc["2023-01-06", "SMB"])


def test_parse_reads_momentum_with_long_header():
    df = parse_french_csv(MOM_TEXT, FACTOR_SOURCES["mom_daily"])
    assert list(df.columns) == ["Mom"]
    assert df["Mom"].tolist() == pytest.approx([0.005, -0.01, 0.0025])


def test_parse_fails_when_header_offset_is_wrong():
    lines = FF3_TEXT.splitlines()
    shifted = "\n".join(["An extra description line"] + lines)
    with pytest.raises(ValueError, match="not the column header"):
        parse_french_csv(shifted, FACTOR_SOURCES["ff3_daily"])


def test_parse_fails_on_bad_date():
    bad = FF3_TEXT.replace("20230105", "2023-01-05")
    with pytest.raises(ValueError, match="8-digit"):
        parse_french_csv(bad, FACTOR_SOURCES["ff3_daily"])


def test_parse_fails_on_impossible_date():
    bad = FF3_TEXT.replace("20230105", "20231345")
    with pytest.raises(ValueError):
        parse_french_csv(bad, FACTOR_SOURCES["ff3_daily"])


def test_parse_fails_on_missing_column():
    with pytest.raises(ValueError, match="missing expected columns"):
        parse_french_csv(FF3_TEXT, FACTOR_SOURCES["ff5_daily"])


def test_parse_fails_on_non_numeric_value():
    bad = FF3_TEXT.replace("0.94", "n/a")
    with pytest.raises(ValueError):
        parse_french_csv(bad, FACTOR_SOURCES["ff3_daily"])


def test_parse_fails_on_duplicate_dates():
    bad = FF3_TEXT.replace("20230104", "20230103")
    with pytest.raises(ValueError, match="duplicate"):
        parse_french_csv(bad, FACTOR_SOURCES["ff3_daily"])


def test_read_factor_zip(tmp_path):
    zip_path = _write_zip(tmp_path / "F-F_Research_Data_Factors_daily_CSV.zip", "F-F_Research_Data_Factors_daily.CSV", FF3_TEXT)
    df = read_factor_zip(zip_path, FACTOR_SOURCES["ff3_daily"])
    assert len(df) == 4

    empty = tmp_path / "empty.zip"
    with zipfile.ZipFile(empty, "w") as zf:
        zf.writestr("readme.md", "nothing")
    with pytest.raises(ValueError, match="No CSV"):
        read_factor_zip(empty, FACTOR_SOURCES["ff3_daily"])


def test_process_and_load_models(tmp_path):
    raw = tmp_path / "raw"
    processed = tmp_path / "processed"
    raw.mkdir()
    _write_zip(raw / "F-F_Research_Data_Factors_daily_CSV.zip", "F-F_Research_Data_Factors_daily.CSV", FF3_TEXT)
    _write_zip(raw / "F-F_Momentum_Factor_daily_CSV.zip", "F-F_Momentum_Factor_daily.CSV", MOM_TEXT)

    results = process_all_raw_zips(raw_dir=raw, processed_dir=processed)
    assert set(results) == {"ff3_daily", "mom_daily"}
    assert (processed / "ff3_daily.csv").exists()

    factors, rf = load_factors_daily("ff3", processed_dir=processed)
    assert list(factors.columns) == ["Mkt-RF", "SMB", "HML"]
    assert factors.loc["2023-01-04", "Mkt-RF"] == pytest.approx(0.03)
    assert rf.name == "RF"
    assert len(rf) == 4

    carhart, rf_c = load_factors_daily("carhart", processed_dir=processed)
    assert list(carhart.columns) == ["Mkt-RF", "SMB", "HML", "Mom"]
    assert list(carhart.index) == list(pd.to_datetime(["2023-01-03", "2023-01-04", "2023-01-06"]))
    assert len(rf_c) == 3

    subset, _ = load_factors_daily("ff3", start="2023-01-04", end="2023-01-05", factors=["HML"], processed_dir=processed)
    assert list(subset.columns) == ["HML"]
    assert len(subset) == 2

    with pytest.raises(FileNotFoundError, match="setup_french_data"):
        load_factors_daily("ff5", processed_dir=processed)


def test_process_all_raw_zips_without_raw_dir(tmp_path):
    assert process_all_raw_zips(raw_dir=tmp_path / "missing", processed_dir=tmp_path) == {}


def test_select_factors():
    assert select_factors("ff5") == ("Mkt-RF", "SMB", "HML", "RMW", "CMA")
    assert select_factors("ff3", ["SMB", "Mkt-RF"]) == ("SMB", "Mkt-RF")
    with pytest.raises(ValueError, match="not part of model"):
        select_factors("ff3", ["RMW"])
    with pytest.raises(ValueError, match="At least one"):
        select_factors("ff3", [])
    with pytest.raises(ValueError, match="Unknown factor model"):
        select_factors("ff7")
