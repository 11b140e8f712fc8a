"""Tests für das Lesen und Bereinigen der Wikipedia-Tabelle."""

from unittest.mock import patch

import pandas as pd
import pytest
import requests

from boxoffice_pipeline.adapters.wikipedia_adapter import WikipediaAdapter


@pytest.fixture
def adapter(tmp_path):
    return WikipediaAdapter({"aux_output_dir": tmp_path / "aux"})


def test_parse_table_uses_first_matching_table(adapter, wikipedia_html):
    rows = adapter.parse_table(wikipedia_html)

    assert len(rows) == 4
    assert rows[0]["title"] == "Gone with the Wind"
    # Fußnote aus Kopfzeile und Zelle entfernt
    assert "tickets sold" in rows[0]
    assert rows[0]["adjusted gross"] == "$3,803,000,000"


def test_parse_table_without_match_raises(tmp_path, wikipedia_html):
    adapter = WikipediaAdapter({"table_selector": "table.does-not-exist", "aux_output_dir": tmp_path})
    with pytest.raises(ValueError, match="Keine Tabelle"):
        adapter.parse_table(wikipedia_html)


def test_transform_cleans_and_types_columns(adapter, wikipedia_html):
    df = adapter.transform(adapter.parse_table(wikipedia_html))

    assert df.columns.tolist() == ["rank", "title", "year", "tickets_sold", "adjusted_gross"]
    assert df["rank"].tolist() == [1, 2, 3, 4]
    assert str(df["tickets_sold"].dtype) == "Int64"
    assert str(df["adjusted_gross"].dtype) == "Int64"
    # eingebettete Anmerkung bei Rang 1 über die feste Patch-Liste entfernt
    assert df.loc[0, "tickets_sold"] == 202044600
    assert df.loc[0, "adjusted_gross"] == 3803000000
    # Markierung "†" hinter dem Titel entfernt
    assert df.loc[3, "title"] == "Marvel's The Avengers"
    assert (df["tickets_sold"] >= 0).all()


def test_transform_without_patch_leaves_annotated_cell_unparsable(tmp_path, wikipedia_html):
    adapter = WikipediaAdapter({"annotated_cell_patches": [], "aux_output_dir": tmp_path})
    df = adapter.transform(adapter.parse_table(wikipedia_html))
    assert pd.isna(df.loc[0, "tickets_sold"])


def test_transform_drops_invalid_and_duplicate_ranks(adapter, tmp_path):
    records = [
        {"rank": "1", "title": "A", "year": "1990", "tickets sold": "10", "adjusted gross": "$100"},
        {"rank": "1", "title": "B", "year": "1991", "tickets sold": "20", "adjusted gross": "$200"},
        {"rank": "–", "title": "C", "year": "1992", "tickets sold": "30", "adjusted gross": "$300"},
        {"rank": "2", "title": "", "year": "1993", "tickets sold": "40", "adjusted gross": "$400"},
        {"rank": "3", "title": "D", "year": "1994 (re-release)", "tickets sold": "50", "adjusted gross": "$500"},
    ]
    df = adapter.transform(records)

    assert df["title"].tolist() == ["A", "D"]
    assert df.loc[1, "year"] == 1994
    invalid = pd.read_csv(tmp_path / "aux" / "invalid" / "WikipediaAdapter_invalid.csv")
    duplicates = pd.read_csv(tmp_path / "aux" / "duplicates" / "WikipediaAdapter_duplicates.csv")
    assert sorted(invalid["reason"]) == ["empty title", "invalid rank"]
    assert duplicates["reason"].tolist() == ["duplicate rank"]


def test_transform_respects_max_rows(tmp_path, wikipedia_html):
    adapter = WikipediaAdapter({"max_rows": 2, "aux_output_dir": tmp_path})
    df = adapter.transform(adapter.parse_table(wikipedia_html))
    assert df["rank"].tolist() == [1, 2]


def test_transform_missing_column_raises(adapter):
    with pytest.raises(ValueError, match="Spalten nicht"):
        adapter.transform([{"rank": "1", "title": "A"}])


def test_extract_fetches_page(adapter, wikipedia_html, fake_session, fake_response):
    session = fake_session({"wikipedia.org": fake_response(wikipedia_html)})
    with patch("boxoffice_pipeline.adapters.wikipedia_adapter.create_session", return_value=session):
        rows = adapter.extract()
    assert len(rows) == 4
    assert "wikipedia.org" in session.requested[0]


def test_extract_propagates_http_errors(adapter, fake_session, fake_response):
    session = fake_session({}, default=fake_response("", status_code=503))
    with patch("boxoffice_pipeline.adapters.wikipedia_adapter.create_session", return_value=session):
        with pytest.raises(requests.HTTPError):
            adapter.extract()


def test_extract_reads_saved_page(tmp_path, wikipedia_html):
    page = tmp_path / "page.html"
    page.write_text(wikipedia_html, encoding="utf-8")
    adapter = WikipediaAdapter({"html_path": page, "aux_output_dir": tmp_path})
    assert len(adapter.extract()) == 4
