import pytest

from ffroll import download_french
from ffroll.download_french import (
    FACTOR_SOURCES,
    AvailableFiles,
    download_factor_zip,
    find_file_by_keywords,
    model_factors,
    model_sources,
    parse_available_files,
)

LIBRARY_HTML = """
<html><body>
<a href="ftp/F-F_Research_Data_Factors_CSV.zip">monthly</a>
<a href="ftp/F-F_Research_Data_Factors_daily_TXT.zip">daily txt</a>
<a href="ftp/F-F_Research_Data_Factors_daily_CSV.zip">daily csv</a>
<a href="ftp/F-F_Research_Data_Factors_weekly_CSV.zip">weekly</a>
<a href="/pages/faculty/ken.french/ftp/F-F_Research_Data_5_Factors_2x3_daily_CSV.zip">ff5</a>
<a href="https://mba.tuck.dartmouth.edu/pages/faculty/ken.french/ftp/F-F_Momentum_Factor_daily_CSV.zip">mom</a>
<a href="data_library.html">not a zip</a>
<a name="anchor">no href</a>
</body></html>
"""


class _FakeResponse:
    def __init__(self, content=b"", text=""):
        self.content = content
        self.text = text

    def raise_for_status(self):
        pass


def test_parse_available_files_builds_absolute_urls():
    available = parse_available_files(LIBRARY_HTML)
    assert len(available.filenames) == 6
    assert available.url_map["F-F_Research_Data_Factors_daily_CSV.zip"] == (
        download_french.BASE_URL + "ftp/F-F_Research_Data_Factors_daily_CSV.zip"
    )
    assert available.url_map["F-F_Research_Data_5_Factors_2x3_daily_CSV.zip"].startswith(
        "https://mba.tuck.dartmouth.edu/pages/faculty/ken.french/ftp/"
    )


def test_registered_sources_resolve_to_distinct_daily_files():
    available = parse_available_files(LIBRARY_HTML)
    found = {
        name: find_file_by_keywords(available, src.keywords, src.exclude_keywords)
        for name, src in FACTOR_SOURCES.items()
    }
    assert found == {
        "ff3_daily": "F-F_Research_Data_Factors_daily_CSV.zip",
        "ff5_daily": "F-F_Research_Data_5_Factors_2x3_daily_CSV.zip",
        "mom_daily": "F-F_Momentum_Factor_daily_CSV.zip",
    }


def test_find_file_by_keywords_no_match():
    available = AvailableFiles(filenames=["a.zip"], url_map={})
    assert find_file_by_keywords(available, ["daily"]) is None


def test_models():
    assert model_factors("carhart") == ("Mkt-RF", "SMB", "HML", "Mom")
    assert [s.name for s in model_sources("carhart")] == ["ff3_daily", "mom_daily"]
    with pytest.raises(ValueError):
        model_sources("apt")


def test_download_factor_zip_writes_and_reuses(tmp_path, monkeypatch):
    calls = []

    def fake_get(url, timeout):
        calls.append(url)
        return _FakeResponse(content=b"PK-zip-bytes")

    monkeypatch.setattr(download_french.requests, "get", fake_get)
    available = parse_available_files(LIBRARY_HTML)

    path = download_factor_zip(FACTOR_SOURCES["mom_daily"], available, raw_dir=tmp_path)
    assert path == tmp_path / "F-F_Momentum_Factor_daily_CSV.zip"
    assert path.read_bytes() == b"PK-zip-bytes"
    assert len(calls) == 1

    download_factor_zip(FACTOR_SOURCES["mom_daily"], available, raw_dir=tmp_path)
    assert len(calls) == 1


def test_download_factor_zip_errors(tmp_path, monkeypatch):
    monkeypatch.setattr(download_french.requests, "get", lambda url, timeout: _FakeResponse(content=b""))
    available = parse_available_files(LIBRARY_HTML)

    with pytest.raises(RuntimeError, match="Empty response"):
        download_factor_zip(FACTOR_SOURCES["ff3_daily"], available, raw_dir=tmp_path)

    with pytest.raises(RuntimeError, match="Could not find"):
        download_factor_zip(FACTOR_SOURCES["ff3_daily"], AvailableFiles([], {}), raw_dir=tmp_path)


def test_discover_available_files(monkeypatch):
    monkeypatch.setattr(
        download_french.requests, "get", lambda url, timeout: _FakeResponse(text=LIBRARY_HTML)
    )
    available = download_french.discover_available_files()
    assert "F-F_Momentum_Factor_daily_CSV.zip" in available.filenames
