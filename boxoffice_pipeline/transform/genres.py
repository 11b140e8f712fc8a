import logging

import pandas as pd


def _clean_genre_list(value) -> list[str]:
    if not isinstance(value, (list, tuple)):
        return []
    # Reihenfolge beibehalten, Mehrfachnennung innerhalb eines Films entfernen
    return list(dict.fromkeys(g.strip() for g in value if isinstance(g, str) and g.strip()))


def genre_frequency(df: pd.DataFrame, column: str = "genres") -> pd.Series:
    """
    Zählt, in wie vielen Filmen jedes Genre vorkommt.

    Ein Genre, das in der Liste eines Films mehrfach steht, zählt nur einmal.
    Sortierung: absteigend nach Anzahl, bei Gleichstand alphabetisch.
    """
    if column not in df.columns or df.empty:
        return pd.Series(dtype="int64", name="films")

    exploded = df[column].apply(_clean_genre_list).explode().dropna()
    if exploded.empty:
        return pd.Series(dtype="int64", name="films")

    counts = exploded.value_counts()
    counts = counts.sort_index().sort_values(ascending=False, kind="stable")
    counts.index.name = "genre"
    counts.name = "films"
    logging.debug(f"Genre-Häufigkeiten: {counts.to_dict()}")
    return counts.astype("int64")


def genre_mask(df: pd.DataFrame, genre: str, column: str = "genres") -> pd.Series:
    """Bool-Maske der Filme, die mit `genre` getaggt sind (Groß-/Kleinschreibung egal)."""
    wanted = genre.strip().lower()
    return df[column].apply(
        lambda genres: any(g.lower() == wanted for g in _clean_genre_list(genres))
    ).astype(bool)
