# boxoffice_pipeline/transform/normalize_ratings.py

import logging

import pandas as pd

UNKNOWN_CONTENT_RATING = "UNKNOWN"

ALLOWED_CONTENT_RATINGS: frozenset[str] = frozenset(
    {"G", "PG", "PG-13", "R", "APPROVED", "UNRATED"})

# Explizite, datensatzspezifische Äquivalenztabelle (kein abgeleitetes Muster!).
# Filme ohne Zertifikat auf IMDb sind in dieser Liste Kinofilme aus der Zeit vor
# bzw. um 1970, deren damalige MPAA-Einstufung "M" oder "GP" hieß; beide gingen
# 1972 in "PG" auf. Deshalb wird der Platzhalter UNKNOWN ebenfalls auf PG gesetzt.
CONTENT_RATING_EQUIVALENCE: dict[str, str] = {
    UNKNOWN_CONTENT_RATING: "PG",
    "M": "PG",
    "GP": "PG",
    "M/PG": "PG",
    "NOT RATED": "UNRATED",
}


def normalize_content_ratings(
    df_input: pd.DataFrame,
    equivalence: dict[str, str] | None = None,
    column: str = "content_rating",
) -> pd.DataFrame:
    """
    Vereinheitlicht die Content-Ratings (Zertifikate) der angereicherten Tabelle.

    • trimmt und schreibt groß
    • ersetzt historische Einstufungen und den Platzhalter UNKNOWN gemäß
      CONTENT_RATING_EQUIVALENCE (bzw. der übergebenen Tabelle)
    • loggt Werte, die danach noch außerhalb von ALLOWED_CONTENT_RATINGS liegen

    Args:
        df_input: DataFrame mit Spalte `column`.
        equivalence: Optionale Ersetzungstabelle, überschreibt die Standardtabelle.
        column: Name der Spalte mit den Zertifikaten.

    Returns:
        Kopie des DataFrames mit normalisierter Spalte.
    """
    df = df_input.copy()
    if column not in df.columns:
        logging.warning(f"Normalize_ratings: Spalte '{column}' nicht vorhanden – übersprungen.")
        return df

    mapping = CONTENT_RATING_EQUIVALENCE if equivalence is None else {
        str(k).strip().upper(): str(v).strip().upper() for k, v in equivalence.items()
    }

    present = df[column].notna()
    cleaned = df.loc[present, column].astype(str).str.strip().str.upper()
    replaced_mask = cleaned.isin(mapping.keys())
    if replaced_mask.any():
        counts = cleaned[replaced_mask].value_counts().to_dict()
        logging.info(f"Normalize_ratings: Ersetze Content-Ratings gemäß Äquivalenztabelle: {counts}")
    df.loc[present, column] = cleaned.replace(mapping)

    outside = df.loc[present, column][~df.loc[present, column].isin(ALLOWED_CONTENT_RATINGS)]
    if not outside.empty:
        logging.warning(
            f"Normalize_ratings: {len(outside)} Content-Ratings außerhalb der erlaubten Menge: "
            f"{sorted(set(outside))}")
    return df
