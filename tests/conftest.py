"""Pytest configuration and shared fixtures for all tests."""

from pathlib import Path

import matplotlib

matplotlib.use("Agg")

import pandas as pd  # noqa: E402
import pytest  # noqa: E402

FIXTURES_DIR = Path(__file__).parent / "fixtures"


def make_search_item(title, year, rating="8.0", certificate="PG", runtime="120 min",
                     genres="Adventure, Family"):
    """Ein Suchtreffer im Markup der IMDb-Titelsuche; None lässt das Element weg."""
    parts = [
        '<div class="lister-item mode-advanced"><div class="lister-item-content">',
        f'<h3 class="lister-item-header"><a href="/title/tt0000001/">{title}</a>'
        f'<span class="lister-item-year text-muted unbold">({year})</span></h3>',
        '<p class="text-muted">',
    ]
    if certificate is not None:
        parts.append(f'<span class="certificate">{certificate}</span> <span class="ghost">|</span>')
    if runtime is not None:
        parts.append(f'<span class="runtime">{runtime}</span> <span class="ghost">|</span>')
    if genres is not None:
        parts.append(f'<span class="genre">\n{genres}            </span>')
    parts.append('</p><div class="ratings-bar">')
    if rating is not None:
        parts.append(
            f'<div class="inline-block ratings-imdb-rating" name="ir" data-value="{rating}">'
            f'<span class="global-sprite rating-star imdb-rating"></span><strong>{rating}</strong></div>')
    parts.append('</div></div></div>')
    return "".join(parts)


def make_search_page(*items):
    body = "".join(items) if items else '<div class="desc">No results.</div>'
    return f'<html><body><div class="lister-list">{body}</div></body></html>'


class FakeResponse:
    def __init__(self, text, status_code=200):
        self.text = text
        self.status_code = status_code

    def raise_for_status(self):
        import requests

        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} Error")


class FakeSession:
    """Ersetzt requests.Session: liefert Antworten nach Teilstring der URL."""

    def __init__(self, routes: dict[str, FakeResponse], default: FakeResponse | None = None):
        self.routes = routes
        self.default = default
        self.requested: list[str] = []
        self.headers = {}

    def get(self, url, timeout=None):
        self.requested.append(url)
        for key, response in self.routes.items():
            if key in url:
                return response
        if self.default is not None:
            return self.default
        return FakeResponse(make_search_page())


@pytest.fixture
def fixtures_dir():
    return FIXTURES_DIR


@pytest.fixture
def fake_response():
    """Fabrik für FakeResponse(text, status_code=200)."""
    return FakeResponse


@pytest.fixture
def fake_session():
    """Fabrik für FakeSession(routes, default=None)."""
    return FakeSession


@pytest.fixture
def search_item():
    return make_search_item


@pytest.fixture
def search_page():
    return make_search_page


@pytest.fixture
def wikipedia_html():
    return (FIXTURES_DIR / "wikipedia_table.html").read_text(encoding="utf-8")


@pytest.fixture
def cleaned_films():
    return pd.DataFrame({
        "rank": pd.array([1, 2, 3, 4], dtype="Int64"),
        "title": ["Gone with the Wind", "Star Wars", "The Sound of Music", "Marvel's The Avengers"],
        "year": pd.array([1939, 1977, 1965, 2012], dtype="Int64"),
        "tickets_sold": pd.array([202044600, 178119600, 142415400, 70000000], dtype="Int64"),
        "adjusted_gross": pd.array([3803000000, 3352000000, 2680000000, 1317000000], dtype="Int64"),
    })


@pytest.fixture
def enriched_films():
    """Zwölf angereicherte Filme für Analyse- und Validierungstests."""
    genres = [
        ["Drama", "Romance", "War"], ["Action", "Adventure", "Fantasy"], ["Biography", "Drama", "Family"],
        ["Adventure", "Family", "Sci-Fi"], ["Drama", "Romance"], ["Adventure", "Drama", "History"],
        ["Animation", "Family", "Fantasy"], ["Action", "Adventure", "Sci-Fi"], ["Drama", "Romance", "War"],
        ["Comedy", "Family"], ["Animation", "Adventure", "Comedy"], ["Action", "Adventure", "Thriller"],
    ]
    return pd.DataFrame({
        "rank": pd.array(range(1, 13), dtype="Int64"),
        "title": [f"Film {i}" for i in range(1, 13)],
        "year": pd.array([1939, 1977, 1965, 1982, 1997, 1956, 1937, 2015, 1965, 1990, 2003, 1975], dtype="Int64"),
        "tickets_sold": pd.array([202, 178, 142, 141, 135, 131, 109, 108, 106, 90, 85, 80], dtype="Int64") * 1_000_000,
        "adjusted_gross": pd.array([38, 33, 26, 26, 25, 24, 20, 20, 19, 17, 16, 15], dtype="Int64") * 100_000_000,
        "imdb_rating": pd.array([8.2, 8.6, 8.1, 7.9, 7.9, 7.9, 7.6, 7.8, 8.0, 7.7, 8.2, 8.1], dtype="Float64"),
        "content_rating": ["G", "PG", "G", "PG", "PG-13", "G", "APPROVED", "PG-13", "PG", "PG", "G", "PG"],
        "runtime_min": pd.array([238, 121, 172, 115, 194, 220, 83, 138, 197, 103, 100, 124], dtype="Int64"),
        "genres": genres,
    })
