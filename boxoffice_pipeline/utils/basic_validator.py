import logging
from typing import List, Tuple
from datetime import datetime
import pandas as pd
from pathlib import Path

from boxoffice_pipeline.transform.normalize_ratings import (
    ALLOWED_CONTENT_RATINGS,
    UNKNOWN_CONTENT_RATING,
)

CURRENT_YEAR: int = datetime.now().year
YEAR_MIN: int = 1888
YEAR_MAX: int = CURRENT_YEAR + 1
IMDB_RATING_RANGE: Tuple[float, float] = (1, 10)

# Pflichtspalten je Pipeline-Stufe
REQUIRED_COLS_BY_STAGE: dict[str, List[str]] = {
    "cleaned": ["rank", "title", "year", "tickets_sold", "adjusted_gross"],
    "enriched": [
        "rank", "title", "year", "tickets_sold", "adjusted_gross",
        "imdb_rating", "content_rating", "runtime_min", "genres"
    ],
}
NON_NEGATIVE_COLS: List[str] = ["tickets_sold", "adjusted_gross"]


def _has_genres(value) -> bool:
    return isinstance(value, (list, tuple)) and any(
        isinstance(g, str) and g.strip() for g in value)


def validate_dataframe(
    df: pd.DataFrame,
    *,
    stage: str = "cleaned",
    required_cols: List[str] | None = None,
    allow_empty: bool = False,
    df_name: str | None = None,
    log_level: int = logging.WARNING,
    expected_rows: int | None = None,
    error_report_path: str | None = None,
    save_invalid_rows: bool = False,
    invalid_rows_output_path: str = "invalid_rows_found.csv",
) -> Tuple[bool, List[str]]:
    """
    Prüft die Datenqualitäts-Invarianten der Filmtabelle.

    Stufe 'cleaned' (nach Scrape + Bereinigung):
      • rank ist eine Permutation von 1..N ohne Duplikate
      • year im gültigen Bereich
      • adjusted_gross / tickets_sold vorhanden und nicht negativ
    Stufe 'enriched' (zusätzlich, nach Anreicherung + Normalisierung):
      • imdb_rating im Bereich 1–10
      • jede Zeile hat mindestens ein Genre
      • content_rating aus der geschlossenen Menge, kein UNKNOWN mehr

    Returns:
        (ok, errors) – ok ist True, wenn keine Fehler gefunden wurden.
    """
    if stage not in REQUIRED_COLS_BY_STAGE:
        raise ValueError(f"Unbekannte Validierungsstufe: {stage}")

    name = df_name or "DataFrame"
    errors: List[str] = []
    invalid_rows_parts: List[pd.DataFrame] = []

    # 0) Leerer DataFrame
    if df.empty and not allow_empty:
        errors.append(f"{name} ist leer.")

    if expected_rows is not None and len(df) != expected_rows:
        errors.append(
            f"{name}: {len(df)} Zeilen statt erwarteter {expected_rows}.")

    # 1) Pflichtspalten prüfen
    req_cols = set(REQUIRED_COLS_BY_STAGE[stage] + (required_cols or []))
    missing = req_cols.difference(df.columns)
    if missing:
        errors.append(f"{name}: fehlende Spalten: {', '.join(sorted(missing))}")

    # 2) Rang: Permutation von 1..N
    if "rank" in df.columns and not df.empty:
        ranks = pd.to_numeric(df["rank"], errors="coerce")
        if ranks.isna().any():
            errors.append(f"{name}: {int(ranks.isna().sum())} Zeilen ohne gültigen Rang.")
            if save_invalid_rows:
                invalid_rows_parts.append(df[ranks.isna()])
        dupes = ranks.duplicated(keep=False) & ranks.notna()
        if dupes.any():
            errors.append(f"{name}: {int(dupes.sum())} Zeilen mit doppeltem Rang.")
            if save_invalid_rows:
                invalid_rows_parts.append(df[dupes])
        expected_ranks = set(range(1, len(df) + 1))
        actual_ranks = set(int(r) for r in ranks.dropna())
        if actual_ranks != expected_ranks:
            missing_ranks = sorted(expected_ranks - actual_ranks)
            extra_ranks = sorted(actual_ranks - expected_ranks)
            errors.append(
                f"{name}: Rang ist keine Permutation von 1..{len(df)} "
                f"(fehlend: {missing_ranks[:10]}, überzählig: {extra_ranks[:10]}).")

    # 3) Jahr
    if "year" in df.columns:
        years = pd.to_numeric(df["year"], errors="coerce")
        invalid_year_mask = (~years.between(YEAR_MIN, YEAR_MAX)) | years.isna()
        if invalid_year_mask.any():
            n_bad = int(invalid_year_mask.sum())
            errors.append(
                f"{name}: {n_bad} Zeilen mit ungültigem Jahr (<{YEAR_MIN} oder >{YEAR_MAX} oder NaN)."
            )
            if save_invalid_rows:
                invalid_rows_parts.append(df[invalid_year_mask])

    # 4) Geldbetrag + Tickets: numerisch, vorhanden, nicht negativ
    for col in NON_NEGATIVE_COLS:
        if col not in df.columns:
            continue
        if not pd.api.types.is_numeric_dtype(df[col]):
            errors.append(
                f"{name}: Spalte {col} ist nicht numerisch (dtype={df[col].dtype}).")
            continue
        bad_mask = df[col].isna() | (df[col] < 0)
        bad_mask = bad_mask.fillna(True).astype(bool)
        if bad_mask.any():
            errors.append(
                f"{name}: {int(bad_mask.sum())} fehlende oder negative Werte in {col}.")
            if save_invalid_rows:
                invalid_rows_parts.append(df[bad_mask])

    if stage == "enriched":
        # 5) IMDb-Rating 1–10
        if "imdb_rating" in df.columns:
            low, high = IMDB_RATING_RANGE
            ratings = pd.to_numeric(df["imdb_rating"], errors="coerce")
            # nullable Float64: between() liefert <NA> für fehlende Ratings
            bad_mask = (~ratings.between(low, high)).fillna(True).astype(bool) | ratings.isna()
            if bad_mask.any():
                errors.append(
                    f"{name}: {int(bad_mask.sum())} Werte außerhalb {low}–{high} (oder NaN) in imdb_rating.")
                if save_invalid_rows:
                    invalid_rows_parts.append(df[bad_mask])

        # 6) Genres: mindestens eins pro Film
        if "genres" in df.columns:
            no_genre_mask = ~df["genres"].apply(_has_genres)
            if no_genre_mask.any():
                errors.append(
                    f"{name}: {int(no_genre_mask.sum())} Filme ohne Genre.")
                if save_invalid_rows:
                    invalid_rows_parts.append(df[no_genre_mask])

        # 7) Content-Rating aus geschlossener Menge, kein Sentinel
        if "content_rating" in df.columns:
            sentinel_mask = df["content_rating"] == UNKNOWN_CONTENT_RATING
            if sentinel_mask.any():
                errors.append(
                    f"{name}: {int(sentinel_mask.sum())} Zeilen mit Platzhalter '{UNKNOWN_CONTENT_RATING}' in content_rating."
                )
            outside_mask = ~df["content_rating"].isin(ALLOWED_CONTENT_RATINGS)
            if outside_mask.any():
                found = sorted(set(df.loc[outside_mask, "content_rating"].astype(str)))
                errors.append(
                    f"{name}: {int(outside_mask.sum())} Zeilen mit unbekanntem content_rating: {found}."
                )
                if save_invalid_rows:
                    invalid_rows_parts.append(df[outside_mask])

    for msg in errors:
        logging.log(log_level, msg)

    # --- Fehlerhafte Zeilen speichern ---
    if save_invalid_rows:
        try:
            if invalid_rows_parts:
                invalid_df = pd.concat(invalid_rows_parts)
                # Listen-Spalten (genres) sind nicht hashbar -> Duplikate über den Index entfernen
                invalid_df = invalid_df[~invalid_df.index.duplicated(keep="first")]
            else:
                # Leere CSV mit Spaltenkopf erstellen
                invalid_df = df.head(0).copy()
            out_path = Path(invalid_rows_output_path)
            out_path.parent.mkdir(parents=True, exist_ok=True)
            invalid_df.to_csv(out_path, index=False)
            logging.info(
                f"{name}: Fehlerhafte Zeilen gespeichert unter {out_path} (Anzahl: {len(invalid_df)})"
            )
        except OSError as e:
            logging.error(
                f"{name}: Fehler beim Speichern fehlerhafter Zeilen: {e}")

    # --- Fehlerreport speichern ---
    if error_report_path and errors:
        try:
            rep_path = Path(error_report_path)
            rep_path.parent.mkdir(parents=True, exist_ok=True)
            rep_path.write_text("\n".join(errors), encoding="utf-8")
            logging.info(f"{name}: Fehlerreport gespeichert unter {rep_path}")
        except OSError as e:
            logging.error(
                f"{name}: Fehler beim Speichern des Fehlerreports: {e}")

    return len(errors) == 0, errors


def validate_or_raise(
    df: pd.DataFrame,
    **kwargs,
) -> None:
    ok, errs = validate_dataframe(df, **kwargs)
    if not ok:
        joined = "\n - ".join(errs)
        raise ValueError(f"Validation Fehler:\n - {joined}")
