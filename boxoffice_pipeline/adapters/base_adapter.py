from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any

import pandas as pd

from boxoffice_pipeline.utils.save_aux_csv import save_aux_csv


class BaseAdapter(ABC):
    """
    Gemeinsame Schnittstelle der Datenquellen (Wikipedia-Tabelle, IMDb-Suche).

    `source_config` ist der Abschnitt `sources.<Adaptername>` der Config;
    `aux_output_dir` legt fest, wohin verworfene Zeilen geschrieben werden.
    """

    def __init__(self, source_config: dict):
        self.config = source_config or {}

    @property
    def name(self) -> str:
        return type(self).__name__

    @abstractmethod
    def extract(self) -> Any:
        """Holt die Rohdaten (Tabellenzeilen oder Suchergebnisse)."""

    @abstractmethod
    def transform(self, data: Any) -> pd.DataFrame:
        """Macht aus den Rohdaten ein typisiertes DataFrame."""

    def run(self) -> pd.DataFrame:
        return self.transform(self.extract())

    def _log_aux_files(self, invalid_rows: list[dict],
                       duplicate_rows: list[dict]) -> dict[str, Path]:
        written = {}
        base_dir = self.config.get("aux_output_dir")
        for kind, rows in (("invalid", invalid_rows), ("duplicates", duplicate_rows)):
            path = save_aux_csv(kind, self.name, rows, base_dir=base_dir)
            if path is not None:
                written[kind] = path
        return written
