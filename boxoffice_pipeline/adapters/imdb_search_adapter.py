# boxoffice_pipeline/adapters/imdb_search_adapter.py
import logging
import re
from typing import List

import pandas as pd
import requests
from bs4 import BeautifulSoup

from boxoffice_pipeline.adapters.base_adapter import BaseAdapter
from boxoffice_pipeline.transform.normalize import TitleException, encode_query_title
from boxoffice_pipeline.transform.normalize_ratings import UNKNOWN_CONTENT_RATING
from boxoffice_pipeline.utils.http_client import create_session, fetch_html

DEFAULT_SEARCH_URL_TEMPLATE = (
    "https://www.imdb.com/search/title/?title={title}"
    "&title_type=feature&release_date={year_from},{year_to}"
)
DEFAULT_SELECTORS: dict[str, str] = {
    "result": "div.lister-item",
    "rating": "div.ratings-imdb-rating strong",
    "certificate": "span.certificate",
    "runtime": "span.runtime",
    "genre": "span.genre",
}

_RUNTIME_MIN_RE = re.compile(r"^\s*(\d+)\s*min\b", re.I)
_RUNTIME_HM_RE = re.compile(r"^\s*(?:(\d+)\s*h)?\s*(?:(\d+)\s*m(?:in)?)?\s*$", re.I)
_RUNTIME_ISO_RE = re.compile(r"^PT(?:(\d+)H)?(?:(\d+)M)?$", re.I)


def parse_runtime(text: str) -> int:
    """
    Wandelt eine Laufzeitangabe in Minuten um.

    Unterstützt "238 min", "3h 58m", "2h", "45m" und ISO-8601 ("PT2H22M").

    Raises:
        ValueError: wenn das Format nicht erkannt wird.
    """
    if not isinstance(text, str) or not text.strip():
        raise ValueError("leere Laufzeitangabe")
    t = text.strip().replace(",", "")
    m = _RUNTIME_MIN_RE.match(t)
    if m:
        return int(m.group(1))
    for pattern in (_RUNTIME_ISO_RE, _RUNTIME_HM_RE):
        m = pattern.match(t)
        if m and (m.group(1) or m.group(2)):
            return int(m.group(1) or 0) * 60 + int(m.group(2) or 0)
    raise ValueError(f"Laufzeit nicht parsebar: '{text}'")


class ImdbSearchAdapter(BaseAdapter):
    """IMDb-Suchadapter: reichert jeden Film über die erweiterte Titelsuche an.

    Pro Film genau eine Anfrage (Titel + Jahresbereich), streng sequentiell,
    ohne Retry und ohne Rate-Limit. Aus dem ersten Treffer werden gelesen:

    • imdb_rating     float 1–10
    • content_rating  str (fehlt das Zertifikat: Platzhalter UNKNOWN)
    • runtime_min     Int64
    • genres          list[str], mindestens ein Eintrag
    """

    def __init__(self, source_config: dict, films: pd.DataFrame | None = None,
                 session: requests.Session | None = None):
        super().__init__(source_config)
        self.films = films
        self.session = session
        self.selectors = {**DEFAULT_SELECTORS, **self.config.get("selectors", {})}
        self.failed_rows: List[dict] = []

    def _get_session(self) -> requests.Session:
        if self.session is None:
            self.session = create_session(self.config.get("headers"))
        return self.session

    def build_search_url(self, query_title: str, year: int) -> str:
        """Füllt das URL-Template; `query_title` muss bereits prozentkodiert sein."""
        template = self.config.get("search_url_template", DEFAULT_SEARCH_URL_TEMPLATE)
        tolerance = int(self.config.get("year_tolerance", 0))
        return template.format(title=query_title,
                               year_from=int(year) - tolerance,
                               year_to=int(year) + tolerance)

    def count_results(self, html: str) -> int:
        soup = BeautifulSoup(html, "html.parser")
        return len(soup.select(self.selectors["result"]))

    def parse_search_result(self, html: str) -> tuple[float, str, int, list[str]]:
        """
        Liest Rating, Zertifikat, Laufzeit und Genres aus dem ersten Suchtreffer.

        Raises:
            ValueError: bei null Treffern, fehlendem/ungültigem Rating,
                        fehlender/unparsebarer Laufzeit oder ohne Genre.
        """
        soup = BeautifulSoup(html, "html.parser")
        item = soup.select_one(self.selectors["result"])
        if item is None:
            raise ValueError("keine Suchtreffer")

        rating_tag = item.select_one(self.selectors["rating"])
        if rating_tag is None:
            raise ValueError("kein Rating im Suchtreffer")
        try:
            rating = float(rating_tag.get_text(strip=True))
        except ValueError as e:
            raise ValueError(f"Rating nicht numerisch: '{rating_tag.get_text(strip=True)}'") from e
        if not 1 <= rating <= 10:
            raise ValueError(f"Rating außerhalb 1–10: {rating}")

        cert_tag = item.select_one(self.selectors["certificate"])
        certificate = cert_tag.get_text(strip=True) if cert_tag else ""
        certificate = certificate or UNKNOWN_CONTENT_RATING

        runtime_tag = item.select_one(self.selectors["runtime"])
        if runtime_tag is None:
            raise ValueError("keine Laufzeit im Suchtreffer")
        runtime = parse_runtime(runtime_tag.get_text(strip=True))

        genre_tag = item.select_one(self.selectors["genre"])
        genres = []
        if genre_tag is not None:
            genres = [g.strip() for g in genre_tag.get_text().split(",") if g.strip()]
        if not genres:
            raise ValueError("keine Genres im Suchtreffer")

        return rating, certificate, runtime, genres

    # ------------------------------------------------------------ #
    # 1) Extract                                                   #
    # ------------------------------------------------------------ #
    def extract(self) -> list[dict]:  # type: ignore[override]
        """
        Fragt jeden Film nacheinander ab.

        Fehler eines Films (HTTP oder Markup) werden isoliert: der Film landet
        in `failed_rows`, die Schleife läuft weiter. Mit `abort_on_error: true`
        bricht der erste Fehler den gesamten Lauf ab.
        """
        if self.films is None or self.films.empty:
            logging.warning("ImdbSearchAdapter: keine Filme zum Anreichern übergeben.")
            return []

        required = {"rank", "title", "year"}
        missing = required.difference(self.films.columns)
        if missing:
            raise ValueError(f"ImdbSearchAdapter: fehlende Spalten: {sorted(missing)}")

        abort_on_error = bool(self.config.get("abort_on_error", False))
        timeout = self.config.get("request_timeout")
        session = self._get_session()

        records: List[dict] = []
        self.failed_rows = []
        total = len(self.films)
        for pos, (_, row) in enumerate(self.films.iterrows(), start=1):
            query_title = row.get("query_title")
            if not isinstance(query_title, str) or not query_title:
                query_title = encode_query_title(row["title"])
            query_year = row.get("query_year")
            if query_year is None or pd.isna(query_year):
                query_year = row["year"]

            url = None
            try:
                if pd.isna(query_year):
                    raise ValueError("kein Erscheinungsjahr für die Suche")
                url = self.build_search_url(query_title, int(query_year))
                html = fetch_html(session, url, timeout=timeout)
                rating, certificate, runtime, genres = self.parse_search_result(html)
            except (requests.RequestException, ValueError) as e:
                logging.warning(
                    f"ImdbSearchAdapter: [{pos}/{total}] '{row['title']}' ({row['year']}) fehlgeschlagen: {e}")
                self.failed_rows.append({
                    "rank": row["rank"],
                    "title": row["title"],
                    "year": row["year"],
                    "query_url": url,
                    "reason": str(e),
                })
                if abort_on_error:
                    raise
                continue

            logging.debug(
                f"ImdbSearchAdapter: [{pos}/{total}] '{row['title']}' -> "
                f"{rating}, {certificate}, {runtime} min, {genres}")
            records.append({
                "rank": row["rank"],
                "imdb_rating": rating,
                "content_rating": certificate,
                "runtime_min": runtime,
                "genres": genres,
            })

        logging.info(
            f"ImdbSearchAdapter: {len(records)} von {total} Filmen angereichert, "
            f"{len(self.failed_rows)} fehlgeschlagen.")
        return records

    # ------------------------------------------------------------ #
    # 2) Transform                                                 #
    # ------------------------------------------------------------ #
    def transform(self, records: list[dict]) -> pd.DataFrame:  # type: ignore[override]
        self._log_aux_files(self.failed_rows, [])

        columns = ["rank", "imdb_rating", "content_rating", "runtime_min", "genres"]
        if not records:
            return pd.DataFrame(columns=columns)

        df = pd.DataFrame(records, columns=columns)
        df["rank"] = df["rank"].astype("Int64")
        df["imdb_rating"] = df["imdb_rating"].astype("Float64")
        df["runtime_min"] = df["runtime_min"].astype("Int64")
        return df

    def verify_title_exceptions(self, exceptions: list[TitleException]) -> dict[str, int]:
        """
        Prüft, ob jede Titel-Ausnahme auf genau EINEN Suchtreffer führt.

        Returns:
            {Quelltitel: Anzahl Treffer}; Netzwerkfehler zählen als -1.
        """
        session = self._get_session()
        timeout = self.config.get("request_timeout")
        result: dict[str, int] = {}
        for exc in exceptions:
            url = self.build_search_url(encode_query_title(exc.query_title), exc.query_year)
            try:
                n_hits = self.count_results(fetch_html(session, url, timeout=timeout))
            except requests.RequestException as e:
                logging.error(f"Titel-Ausnahme '{exc.title}': Anfrage fehlgeschlagen: {e}")
                n_hits = -1
            if n_hits != 1:
                logging.warning(f"Titel-Ausnahme '{exc.title}' -> {n_hits} Treffer (erwartet: 1).")
            result[exc.title] = n_hits
        return result
