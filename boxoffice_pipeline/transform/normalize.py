import logging
import re
import unicodedata
from dataclasses import dataclass

import pandas as pd


def normalize_film_title(title: str) -> str:
	"""Vergleichsschlüssel für Titel (ASCII, lower, ohne Interpunktion)."""
	if not isinstance(title, str):
		return ""
	# 1) typografische Apostrophe/Striche vereinheitlichen, dann ASCII + lower
	t = title.replace("’", "'").replace("–", "-").replace("—", "-")
	t = unicodedata.normalize("NFKD", t).encode("ascii", "ignore").decode("utf-8").lower()
	# 2) trailing "(YYYY)" entfernen
	t = re.sub(r"\s*\(\d{4}\)\s*$", "", t)
	# 3) Apostrophe ersatzlos streichen ("marvel's" -> "marvels")
	t = t.replace("'", "")
	# 4) Interpunktion → Leerzeichen
	t = re.sub(r"[^\w\s]", " ", t)
	# 5) Spaces kollabieren + trimmen
	return re.sub(r"\s+", " ", t).strip()


def encode_query_title(title: str) -> str:
	"""
	Macht einen Titel query-string-tauglich.

	Kodiert Leerzeichen (%20) und Apostrophe (%27, auch typografisch) sowie
	'&' (%26), das den Query-String sonst auftrennen würde. Alles andere bleibt
	unverändert, die Suche verträgt Doppelpunkte, Punkte und Bindestriche.
	"""
	if not isinstance(title, str):
		return ""
	t = title.strip()
	t = t.replace("&", "%26")
	t = t.replace("’", "%27").replace("'", "%27")
	return t.replace(" ", "%20")


@dataclass(frozen=True)
class TitleException:
	"""Abweichung zwischen Wikipedia-Titel/-Jahr und dem Titel/Jahr auf IMDb."""
	title: str
	year: int
	query_title: str
	query_year: int


# Handgepflegte Korrekturliste. Skaliert nicht: jeder neue Ausreißer muss hier
# ergänzt werden (oder in config.yaml unter processing.title_exceptions).
TITLE_EXCEPTIONS: list[TitleException] = [
	TitleException("Star Wars", 1977, "Star Wars: Episode IV - A New Hope", 1977),
	TitleException("The Empire Strikes Back", 1980,
	               "Star Wars: Episode V - The Empire Strikes Back", 1980),
	TitleException("Return of the Jedi", 1983,
	               "Star Wars: Episode VI - Return of the Jedi", 1983),
	TitleException("Star Wars: Episode I – The Phantom Menace", 1999,
	               "Star Wars: Episode I - The Phantom Menace", 1999),
	TitleException("Snow White and the Seven Dwarfs", 1938,
	               "Snow White and the Seven Dwarfs", 1937),
	TitleException("Marvel's The Avengers", 2012, "The Avengers", 2012),
]


def title_exceptions_from_config(entries: list[dict] | None) -> list[TitleException]:
	"""Baut TitleException-Objekte aus der YAML-Liste; None -> Standardliste."""
	if entries is None:
		return list(TITLE_EXCEPTIONS)
	exceptions = []
	for entry in entries:
		try:
			exceptions.append(TitleException(
				title=str(entry["title"]),
				year=int(entry["year"]),
				query_title=str(entry.get("query_title", entry["title"])),
				query_year=int(entry.get("query_year", entry["year"])),
			))
		except (KeyError, TypeError, ValueError) as e:
			raise ValueError(f"Ungültiger Eintrag in title_exceptions: {entry} ({e})") from e
	return exceptions


def apply_title_exceptions(
	df_input: pd.DataFrame,
	exceptions: list[TitleException] | None = None,
) -> pd.DataFrame:
	"""
	Ergänzt `query_title` (prozentkodiert) und `query_year` für die Suche.

	Treffer werden über den normalisierten Titel + Jahr gefunden; ohne Treffer
	gelten Titel und Jahr der Quelle.
	"""
	df = df_input.copy()
	exceptions = TITLE_EXCEPTIONS if exceptions is None else exceptions

	lookup = {
		(normalize_film_title(exc.title), exc.year): exc for exc in exceptions
	}
	used: set[tuple[str, int]] = set()

	query_titles = []
	query_years = []
	for _, row in df.iterrows():
		year = int(row["year"]) if pd.notna(row["year"]) else None
		key = (normalize_film_title(row["title"]), year)
		exc = lookup.get(key)
		if exc is not None:
			used.add(key)
			logging.info(
				f"Titel-Ausnahme: '{row['title']}' ({year}) -> '{exc.query_title}' ({exc.query_year})")
			query_titles.append(encode_query_title(exc.query_title))
			query_years.append(exc.query_year)
		else:
			query_titles.append(encode_query_title(row["title"]))
			query_years.append(year)

	for key in lookup.keys() - used:
		logging.warning(f"Titel-Ausnahme ohne passende Zeile: {lookup[key].title} ({lookup[key].year})")

	df["query_title"] = query_titles
	df["query_year"] = pd.array(query_years, dtype="Int64")
	return df
