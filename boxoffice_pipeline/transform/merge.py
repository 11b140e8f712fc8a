from __future__ import annotations

import logging

import pandas as pd

ENRICHMENT_COLUMNS: list[str] = ["imdb_rating", "content_rating", "runtime_min", "genres"]


def merge_enrichment(base_df: pd.DataFrame, enrichment_df: pd.DataFrame) -> pd.DataFrame:
    """
    Hängt die Anreicherungs-Spalten per Left-Join über `rank` an die
    bereinigte Tabelle an.

      • Reihenfolge und Zeilenzahl der Basistabelle bleiben erhalten
      • Filme ohne erfolgreiche Anreicherung behalten <NA> bzw. leere Genre-Listen
      • mehrfach angereicherte Ränge sind ein Programmfehler -> ValueError
    """
    if base_df is None or base_df.empty:
        return pd.DataFrame()

    df = base_df.copy()
    if enrichment_df is None or enrichment_df.empty:
        logging.warning("merge_enrichment: keine Anreicherungsdaten – alle Spalten bleiben leer.")
        enrichment_df = pd.DataFrame(columns=["rank"] + ENRICHMENT_COLUMNS)

    if enrichment_df["rank"].duplicated().any():
        dupes = enrichment_df.loc[enrichment_df["rank"].duplicated(), "rank"].tolist()
        raise ValueError(f"merge_enrichment: Ränge mehrfach angereichert: {dupes}")

    # Bereits vorhandene Anreicherungs-Spalten (z.B. erneuter Lauf) ersetzen
    df = df.drop(columns=[c for c in ENRICHMENT_COLUMNS if c in df.columns])

    right = enrichment_df[["rank"] + [c for c in ENRICHMENT_COLUMNS if c in enrichment_df.columns]].copy()
    right["rank"] = right["rank"].astype("Int64")
    merged = df.merge(right, on="rank", how="left", validate="one_to_one")

    for col in ENRICHMENT_COLUMNS:
        if col not in merged.columns:
            merged[col] = pd.NA
    merged["genres"] = merged["genres"].apply(lambda g: g if isinstance(g, list) else [])
    merged["imdb_rating"] = pd.to_numeric(merged["imdb_rating"], errors="coerce").astype("Float64")
    merged["runtime_min"] = pd.to_numeric(merged["runtime_min"], errors="coerce").astype("Int64")

    missing = merged["imdb_rating"].isna() & merged["runtime_min"].isna()
    if missing.any():
        logging.warning(
            f"merge_enrichment: {int(missing.sum())} Filme ohne Anreicherung: "
            f"{merged.loc[missing, 'title'].tolist()[:10]}")
    logging.info(f"merge_enrichment: {len(merged)} Zeilen nach Merge.")
    return merged
