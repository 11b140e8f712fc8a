import logging
from pathlib import Path

import pandas as pd

GENRE_SEPARATOR = "|"


class CsvLoader:
    def __init__(self, path: str | Path):
        self.path = Path(path)

    def load(self, df: pd.DataFrame):
        out = df.copy()
        if "genres" in out.columns:
            # Listen-Spalte als "Action|Adventure" speichern
            out["genres"] = out["genres"].apply(
                lambda g: GENRE_SEPARATOR.join(g) if isinstance(g, list) else "")
        self.path.parent.mkdir(parents=True, exist_ok=True)
        out.to_csv(self.path, index=False)
        logging.info(f"✅ Angereicherte Filmtabelle gespeichert unter: {self.path}")


def read_enriched_csv(path: str | Path) -> pd.DataFrame:
    """Gegenstück zu CsvLoader.load: liest die Tabelle inkl. Genre-Listen wieder ein."""
    df = pd.read_csv(path)
    if "genres" in df.columns:
        df["genres"] = df["genres"].apply(
            lambda g: [x for x in str(g).split(GENRE_SEPARATOR) if x] if pd.notna(g) else [])
    for col in ("rank", "year", "tickets_sold", "adjusted_gross", "runtime_min", "query_year"):
        if col in df.columns:
            df[col] = pd.to_numeric(df[col], errors="coerce").astype("Int64")
    if "imdb_rating" in df.columns:
        df["imdb_rating"] = pd.to_numeric(df["imdb_rating"], errors="coerce").astype("Float64")
    return df
