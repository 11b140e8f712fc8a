# boxoffice_pipeline/adapters/wikipedia_adapter.py
import logging
import re
from pathlib import Path
from typing import List

import pandas as pd
from bs4 import BeautifulSoup

from boxoffice_pipeline.adapters.base_adapter import BaseAdapter
from boxoffice_pipeline.transform.clean_fields import (
    ANNOTATED_CELL_PATCHES,
    apply_annotated_cell_patches,
    clean_numeric_column,
    clean_numeric_text,
)
from boxoffice_pipeline.utils.http_client import create_session, fetch_html

DEFAULT_URL = "https://en.wikipedia.org/wiki/List_of_highest-grossing_films_in_the_United_States_and_Canada"
DEFAULT_TABLE_SELECTOR = "table.wikitable"
DEFAULT_COLUMN_MAP: dict[str, str] = {
    "rank": "rank",
    "title": "title",
    "year": "year",
    "tickets sold": "tickets_sold",
    "adjusted gross": "adjusted_gross",
}
RESULT_COLUMNS: List[str] = ["rank", "title", "year", "tickets_sold", "adjusted_gross"]

_FOOTNOTE_RE = re.compile(r"\[[^\]]*\]")
_YEAR_RE = re.compile(r"((?:18|19|20)\d{2})")
# Markierungen hinter Titeln (z.B. "†" = läuft noch im Kino)
_TITLE_MARKERS = "†‡*§ "


def _normalize_header(text: str) -> str:
    text = _FOOTNOTE_RE.sub("", text)
    return re.sub(r"\s+", " ", text).strip().lower()


def _cell_text(cell) -> str:
    for sup in cell.find_all("sup"):
        sup.decompose()
    return cell.get_text(" ", strip=True)


class WikipediaAdapter(BaseAdapter):
    """Wikipedia-Adapter: Tabelle der umsatzstärksten Filme (inflationsbereinigt).

    • rank            Int64, Permutation 1..N
    • title           str
    • year            Int64
    • tickets_sold    Int64 (verkaufte Tickets, geschätzt)
    • adjusted_gross  Int64 (inflationsbereinigtes Einspielergebnis in $)
    """

    # ------------------------------------------------------------ #
    # 1) Extract                                                   #
    # ------------------------------------------------------------ #
    def extract(self) -> list[dict]:  # type: ignore[override]
        url = self.config.get("url", DEFAULT_URL)
        html_path = self.config.get("html_path")
        if html_path:
            # Gespeicherter Seitenstand statt Live-Seite (reproduzierbare Läufe)
            html = Path(html_path).read_text(encoding="utf-8")
            logging.info(f"WikipediaAdapter: Seite aus Datei gelesen: {html_path}")
        else:
            session = create_session(self.config.get("headers"))
            html = fetch_html(session, url, timeout=self.config.get("request_timeout"))
            logging.info(f"WikipediaAdapter: Seite geladen ({len(html)} Zeichen) von {url}")
        return self.parse_table(html)

    def parse_table(self, html: str) -> list[dict]:
        """
        Sucht die ERSTE Tabelle, die zum konfigurierten Selektor passt, und
        liefert ihre Datenzeilen als Dicts {Kopfzeilen-Label: Zelltext}.

        Raises:
            ValueError: wenn keine Tabelle passt oder keine Kopfzeile existiert.
        """
        selector = self.config.get("table_selector", DEFAULT_TABLE_SELECTOR)
        soup = BeautifulSoup(html, "html.parser")
        table = soup.select_one(selector)
        if table is None:
            raise ValueError(f"Keine Tabelle für Selektor '{selector}' gefunden – Seitenstruktur geändert?")

        rows = table.find_all("tr")
        header_row = next((r for r in rows if r.find("th") and not r.find("td")), None)
        if header_row is None:
            raise ValueError("Tabelle ohne Kopfzeile gefunden.")
        headers = [_normalize_header(_cell_text(c)) for c in header_row.find_all(["th", "td"])]

        records = []
        for row in rows:
            if row is header_row or not row.find("td"):
                continue
            cells = [_cell_text(c) for c in row.find_all(["th", "td"])]
            if len(cells) != len(headers):
                logging.debug(
                    f"WikipediaAdapter: Zeile mit {len(cells)} statt {len(headers)} Zellen: {cells}")
            records.append(dict(zip(headers, cells)))
        logging.info(f"WikipediaAdapter: {len(records)} Tabellenzeilen extrahiert (Spalten: {headers}).")
        return records

    # ------------------------------------------------------------ #
    # 2) Transform + Validate                                      #
    # ------------------------------------------------------------ #
    def transform(self, records: list[dict]) -> pd.DataFrame:  # type: ignore[override]
        column_map = {
            k.strip().lower(): v for k, v in self.config.get("column_map", DEFAULT_COLUMN_MAP).items()
        }

        if not records:
            raise ValueError("WikipediaAdapter: Tabelle enthält keine Datenzeilen.")

        mapped_rows = []
        for rec in records:
            mapped = {}
            for header, value in rec.items():
                target = column_map.get(header)
                if target is None:
                    # Präfix-Treffer, z.B. "adjusted gross (2024 $)"
                    target = next((v for k, v in column_map.items() if header.startswith(k)), None)
                if target is not None and target not in mapped:
                    mapped[target] = value
            mapped_rows.append(mapped)

        df = pd.DataFrame(mapped_rows, columns=RESULT_COLUMNS)
        missing_cols = [c for c in RESULT_COLUMNS if df[c].isna().all()]
        if missing_cols:
            raise ValueError(f"WikipediaAdapter: Spalten nicht in der Tabelle gefunden: {missing_cols}")

        # ---------- Rang + Jahr + Titel ---------------------------
        df["rank"] = pd.to_numeric(df["rank"].apply(clean_numeric_text), errors="coerce").astype("Int64")
        df["year"] = pd.to_numeric(
            df["year"].astype(str).str.extract(_YEAR_RE.pattern, expand=False),
            errors="coerce").astype("Int64")
        df["title"] = df["title"].fillna("").astype(str).str.strip().str.strip(_TITLE_MARKERS)

        invalid_rows: List[dict] = []
        duplicate_rows: List[dict] = []
        seen_ranks = set()
        keep = []
        for idx, row in df.iterrows():
            reason = None
            if pd.isna(row["rank"]):
                reason = "invalid rank"
            elif not row["title"]:
                reason = "empty title"
            if reason:
                invalid_rows.append({**records[idx], "reason": reason})
                continue
            if int(row["rank"]) in seen_ranks:
                duplicate_rows.append({**records[idx], "reason": "duplicate rank"})
                continue
            seen_ranks.add(int(row["rank"]))
            keep.append(idx)
        df = df.loc[keep].copy()

        # ---------- Zellen mit eingebetteter Anmerkung -------------
        patches = self._patches_from_config()
        df = apply_annotated_cell_patches(df, patches)

        # ---------- Geld + Tickets → Int64 ------------------------
        df["tickets_sold"] = clean_numeric_column(df["tickets_sold"])
        df["adjusted_gross"] = clean_numeric_column(df["adjusted_gross"])

        max_rows = self.config.get("max_rows")
        if max_rows:
            df = df[df["rank"] <= int(max_rows)]

        # ---------- CSV-Logging (zentraler Pfad) --------------------
        self._log_aux_files(invalid_rows, duplicate_rows)
        if invalid_rows or duplicate_rows:
            logging.warning(
                f"WikipediaAdapter: {len(invalid_rows)} ungültige, {len(duplicate_rows)} doppelte Zeilen verworfen.")

        result = df.sort_values("rank").reset_index(drop=True)
        logging.info(f"WikipediaAdapter: {len(result)} Filme nach Bereinigung.")
        return result[RESULT_COLUMNS]

    def _patches_from_config(self) -> dict[tuple[int, str], str]:
        entries = self.config.get("annotated_cell_patches")
        if entries is None:
            return ANNOTATED_CELL_PATCHES
        return {(int(e["rank"]), str(e["column"])): str(e["separator"]) for e in entries}
