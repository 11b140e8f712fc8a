import logging
import re

import pandas as pd

# Währungssymbole, Tausendertrenner, Fußnoten-Klammern wie "[a]" oder "[12]"
_FOOTNOTE_RE = re.compile(r"\[[^\]]*\]")
_STRIP_RE = re.compile(r"[$€£,\s ]")

# Feste Korrekturliste für genau diesen Datensatz: (Rang, Spalte) -> Trennzeichen.
# Die Ticketzahl von "Gone with the Wind" trägt eine eingebettete Anmerkung
# ("202,044,600 (1939–2010)"); nur der Teil vor dem Trenner ist die Zahl.
ANNOTATED_CELL_PATCHES: dict[tuple[int, str], str] = {
    (1, "tickets_sold"): "(",
}


def clean_numeric_text(value) -> str | None:
    """Entfernt Währungssymbole, Tausendertrenner und Fußnoten; None bei leerem Text."""
    if value is None or (not isinstance(value, str) and pd.isna(value)):
        return None
    text = _FOOTNOTE_RE.sub("", str(value))
    text = _STRIP_RE.sub("", text)
    return text or None


def clean_numeric_column(series: pd.Series) -> pd.Series:
    """
    Wandelt eine Text-Spalte mit Geld-/Zählwerten in nullable Int64 um.

    Nicht parsebare Werte werden zu <NA> (und geloggt), nicht verworfen.
    """
    cleaned = series.apply(clean_numeric_text)
    numeric = pd.to_numeric(cleaned, errors="coerce")
    unparsable = numeric.isna() & cleaned.notna()
    if unparsable.any():
        logging.warning(
            f"clean_numeric_column: {int(unparsable.sum())} nicht parsebare Werte in "
            f"'{series.name}': {cleaned[unparsable].tolist()[:5]}")
    return numeric.round().astype("Int64")


def apply_annotated_cell_patches(
    df_input: pd.DataFrame,
    patches: dict[tuple[int, str], str] | None = None,
) -> pd.DataFrame:
    """
    Wendet die feste Patch-Liste für Zellen mit eingebetteter Anmerkung an.

    Für jeden Eintrag (Rang, Spalte) -> Trenner bleibt nur der Text vor dem
    Trenner stehen. Erwartet eine bereits numerische `rank`-Spalte.
    """
    df = df_input.copy()
    patches = ANNOTATED_CELL_PATCHES if patches is None else patches
    for (rank, column), separator in patches.items():
        if column not in df.columns:
            logging.warning(f"Annotated-Patch: Spalte '{column}' fehlt – übersprungen.")
            continue
        mask = df["rank"] == rank
        if not mask.any():
            logging.warning(f"Annotated-Patch: Rang {rank} nicht gefunden – übersprungen.")
            continue
        for idx in df.index[mask]:
            original = df.at[idx, column]
            if isinstance(original, str) and separator in original:
                df.at[idx, column] = original.split(separator, 1)[0].strip()
                logging.info(
                    f"Annotated-Patch: Rang {rank}, {column}: '{original}' -> '{df.at[idx, column]}'")
    return df
