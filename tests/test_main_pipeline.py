"""End-to-End-Lauf der Pipeline gegen gespeicherte Wikipedia-Seite und gefälschte IMDb-Suche."""

from unittest.mock import patch

import pytest
import requests
import yaml

from boxoffice_pipeline.loaders.csv_loader import read_enriched_csv
from boxoffice_pipeline.main_pipeline import BoxOfficePipeline

SESSION_TARGET = "boxoffice_pipeline.adapters.imdb_search_adapter.create_session"


@pytest.fixture
def imdb_session(fake_session, fake_response, search_page, search_item):
    def hit(*args, **kwargs):
        return fake_response(search_page(search_item(*args, **kwargs)))

    return fake_session({
        "Gone%20with%20the%20Wind": hit(
            "Gone with the Wind", 1939, rating="8.2", certificate=None, runtime="238 min",
            genres="Drama, Romance, War"),
        "Episode%20IV": hit(
            "Star Wars: Episode IV - A New Hope", 1977, rating="8.6", certificate="PG",
            runtime="2h 1m", genres="Action, Adventure, Fantasy"),
        "Sound%20of%20Music": hit(
            "The Sound of Music", 1965, rating="8.1", certificate="G", runtime="172 min",
            genres="Biography, Drama, Family"),
        "The%20Avengers": hit(
            "The Avengers", 2012, rating="8.0", certificate="PG-13", runtime="143 min",
            genres="Action, Sci-Fi"),
    })


@pytest.fixture
def write_config(tmp_path, fixtures_dir):
    def write(**overrides):
        config = {
            "logging": {"level": "INFO"},
            "sources": {
                "WikipediaAdapter": {"html_path": str(fixtures_dir / "wikipedia_table.html")},
                "ImdbSearchAdapter": {"abort_on_error": False},
            },
            "processing": {"expected_rows": 4},
            "output": {
                "csv_path": "out/films.csv",
                "validation_reports_dir": "reports",
                "aux_output_dir": "aux",
            },
            "analysis": {"enabled": False},
        }
        for section, values in overrides.items():
            config.setdefault(section, {}).update(values)
        path = tmp_path / "config.yaml"
        path.write_text(yaml.safe_dump(config, allow_unicode=True), encoding="utf-8")
        return path

    return write


def test_pipeline_runs_end_to_end(tmp_path, write_config, imdb_session):
    config_path = write_config()

    with patch(SESSION_TARGET, return_value=imdb_session):
        df = BoxOfficePipeline(config_path).run()

    assert df["rank"].tolist() == [1, 2, 3, 4]
    assert df["title"].tolist()[3] == "Marvel's The Avengers"
    assert df["runtime_min"].tolist() == [238, 121, 172, 143]
    # fehlendes Zertifikat -> Platzhalter -> PG
    assert df["content_rating"].tolist() == ["PG", "PG", "G", "PG-13"]
    assert df.loc[0, "genres"] == ["Drama", "Romance", "War"]
    assert len(imdb_session.requested) == 4

    saved = read_enriched_csv(tmp_path / "out" / "films.csv")
    assert saved["imdb_rating"].tolist() == pytest.approx([8.2, 8.6, 8.1, 8.0])
    assert not (tmp_path / "reports" / "Enriched-DF_report.txt").exists()


def test_pipeline_with_analysis_writes_report(tmp_path, write_config, imdb_session):
    config_path = write_config(analysis={
        "enabled": True, "output_dir": "analysis", "report_path": "analysis/report.md",
        "ttest_genre": "Drama", "histogram_bins": 5,
    })

    with patch(SESSION_TARGET, return_value=imdb_session):
        BoxOfficePipeline(config_path).run()

    report = (tmp_path / "analysis" / "report.md").read_text(encoding="utf-8")
    assert "Welch-t-Test" in report
    assert (tmp_path / "analysis" / "hist_runtime.png").exists()
    assert (tmp_path / "analysis" / "scatter_rating_vs_tickets.png").exists()


def test_pipeline_keeps_going_when_a_film_fails(tmp_path, write_config, imdb_session, fake_response):
    config_path = write_config()
    imdb_session.routes["Sound%20of%20Music"] = fake_response("", status_code=500)

    with patch(SESSION_TARGET, return_value=imdb_session):
        df = BoxOfficePipeline(config_path).run()

    assert len(df) == 4
    assert df["imdb_rating"].isna().tolist() == [False, False, True, False]
    assert (tmp_path / "aux" / "invalid" / "ImdbSearchAdapter_invalid.csv").exists()
    report = (tmp_path / "reports" / "Enriched-DF_report.txt").read_text(encoding="utf-8")
    assert "ohne Genre" in report
    assert "imdb_rating" in report


def test_pipeline_abort_on_error(write_config, imdb_session, fake_response):
    config_path = write_config(sources={"ImdbSearchAdapter": {"abort_on_error": True}})
    imdb_session.routes["Episode%20IV"] = fake_response("", status_code=503)

    with patch(SESSION_TARGET, return_value=imdb_session):
        with pytest.raises(requests.HTTPError):
            BoxOfficePipeline(config_path).run()


def test_pipeline_without_table_returns_none(tmp_path, write_config):
    config_path = write_config(sources={
        "WikipediaAdapter": {"html_path": str(tmp_path / "missing.html")},
    })
    assert BoxOfficePipeline(config_path).run() is None


def test_pipeline_stops_when_nothing_enriched(tmp_path, write_config, fake_session):
    config_path = write_config()
    with patch(SESSION_TARGET, return_value=fake_session({})):
        assert BoxOfficePipeline(config_path).run() is None
    assert not (tmp_path / "out" / "films.csv").exists()


def test_strict_validation_raises(write_config, imdb_session):
    config_path = write_config(processing={"expected_rows": 100, "strict_validation": True})
    with patch(SESSION_TARGET, return_value=imdb_session):
        with pytest.raises(ValueError, match="Validation Fehler"):
            BoxOfficePipeline(config_path).run()


def test_missing_config_raises(tmp_path):
    with pytest.raises(FileNotFoundError):
        BoxOfficePipeline(tmp_path / "nope.yaml")
