import yaml
import logging
from pathlib import Path
import pandas as pd

# Adapter-Importe
from boxoffice_pipeline.adapters.wikipedia_adapter import WikipediaAdapter
from boxoffice_pipeline.adapters.imdb_search_adapter import ImdbSearchAdapter

# Transformations-Importe
from boxoffice_pipeline.transform.normalize import apply_title_exceptions, title_exceptions_from_config
from boxoffice_pipeline.transform.merge import merge_enrichment
from boxoffice_pipeline.transform.normalize_ratings import normalize_content_ratings

# Loader-/Analyse-Importe
from boxoffice_pipeline.loaders.csv_loader import CsvLoader
from boxoffice_pipeline.run_analysis import FilmAnalyzer
from boxoffice_pipeline.utils.basic_validator import validate_dataframe, validate_or_raise


class BoxOfficePipeline:
    """
    Orchestriert den gesamten Lauf: Wikipedia-Tabelle lesen und bereinigen,
    Titel für die Suche aufbereiten, jeden Film über IMDb anreichern,
    nachbearbeiten, validieren, speichern und analysieren.
    """

    def __init__(self, config_filename: str | Path = 'config.yaml'):
        """
        Initialisiert die Pipeline.

        Liest die Konfigurationsdatei ein und initialisiert das Logging.

        Args:
            config_filename: Pfad oder Dateiname der YAML-Konfigurationsdatei;
                             relative Angaben gelten relativ zu diesem Modul.

        Raises:
            FileNotFoundError: Wenn die Konfigurationsdatei nicht gefunden wird.
            yaml.YAMLError: Wenn die Konfigurationsdatei nicht gültig ist.
        """
        self.script_dir: Path = Path(__file__).resolve().parent
        config_path = Path(config_filename)
        if not config_path.is_absolute():
            config_path = self.script_dir / config_path
        self.config_path: Path = config_path
        self.base_dir: Path = config_path.parent

        if not config_path.exists():
            raise FileNotFoundError(
                f"Konfigurationsdatei nicht gefunden: {config_path}")

        try:
            with open(config_path, 'r', encoding='utf-8') as f:
                self.config: dict = yaml.safe_load(f)
        except yaml.YAMLError as e:
            logging.error(
                f"Fehler beim Parsen der Konfigurationsdatei {config_path}: {e}"
            )
            raise  # ohne Config kann die Pipeline nicht arbeiten

        if self.config is None:  # yaml.safe_load liefert None bei leerer Datei
            self.config = {}
            logging.warning(
                f"Konfigurationsdatei {config_path} ist leer oder enthält keine gültige YAML-Struktur."
            )

        log_config: dict = self.config.get('logging', {})
        level_name = log_config.get('level', 'INFO').upper()
        level_value = getattr(logging, level_name, logging.INFO)
        logging.basicConfig(
            level=level_value,
            format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S')
        logging.getLogger().setLevel(level_value)  # Root-Logger explizit setzen
        self.logger = logging.getLogger(__name__)

        self.output_cfg: dict = self.config.get("output", {})
        self.processing_cfg: dict = self.config.get("processing", {})
        self.validation_reports_dir: Path = self._resolve_path(
            self.output_cfg.get("validation_reports_dir", "data/validation_reports"))
        self.validation_reports_dir.mkdir(parents=True, exist_ok=True)

    def _resolve_path(self, path_value: str | Path) -> Path:
        """
        Konvertiert einen Pfadwert aus der Konfiguration in ein absolutes Path-Objekt.

        Relative Pfade werden relativ zum Verzeichnis der Konfigurationsdatei aufgelöst.

        Raises:
            ValueError: Wenn der path_value weder ein String noch ein Path-Objekt ist.
        """
        if isinstance(path_value, Path):
            path_obj = path_value
        elif isinstance(path_value, str):
            path_obj = Path(path_value)
        else:
            self.logger.error(
                f"Ungültiger Pfadwert in Config: {path_value} (Typ: {type(path_value)})"
            )
            raise ValueError(
                f"Pfadwert muss ein String oder Path-Objekt sein: {path_value}")

        if path_obj.is_absolute():
            return path_obj
        return (self.base_dir / path_obj).resolve()

    def _adapter_config(self, adapter_name: str) -> dict:
        """Adapter-Config aus `sources` mit aufgelösten *_path-Werten."""
        raw = self.config.get("sources", {}).get(adapter_name, {}) or {}
        processed = {
            key: (self._resolve_path(value)
                  if isinstance(value, (str, Path)) and key.endswith("_path") else value)
            for key, value in raw.items()
        }
        processed.setdefault(
            "aux_output_dir",
            self._resolve_path(self.output_cfg.get("aux_output_dir", "data/intermediate_adapter_outputs")))
        return processed

    def _validate(self, df: pd.DataFrame, stage: str, df_name: str) -> bool:
        kwargs = dict(
            stage=stage,
            df_name=df_name,
            expected_rows=self.processing_cfg.get("expected_rows"),
            error_report_path=str(self.validation_reports_dir / f"{df_name}_report.txt"),
            save_invalid_rows=True,
            invalid_rows_output_path=str(self.validation_reports_dir / f"{df_name}_invalid_rows.csv"),
        )
        if self.processing_cfg.get("strict_validation", False):
            validate_or_raise(df, **kwargs)
            return True
        ok, errs = validate_dataframe(df, **kwargs)
        if not ok:
            self.logger.warning(f"Validation-Probleme im {df_name}: {errs}")
        return ok

    def _extract_table(self) -> pd.DataFrame | None:
        """Liest und bereinigt die Wikipedia-Tabelle; None bei Fehlern."""
        try:
            adapter = WikipediaAdapter(self._adapter_config("WikipediaAdapter"))
            df_table = adapter.run()
        except Exception as e:
            self.logger.error(
                f"Fehler beim Lesen der Wikipedia-Tabelle: {e}", exc_info=True)
            return None
        self.logger.info(f"Wikipedia-Tabelle: {len(df_table)} Filme geladen und bereinigt.")
        self._validate(df_table, "cleaned", "Cleaned-DF")
        return df_table

    def _enrich(self, df_table: pd.DataFrame) -> pd.DataFrame:
        """
        Reichert die Tabelle über die IMDb-Suche an.

        Fehler einzelner Filme werden im Adapter isoliert. Bei
        abort_on_error=true wird die Exception bewusst weitergeworfen.
        """
        exceptions = title_exceptions_from_config(self.processing_cfg.get("title_exceptions"))
        df_query = apply_title_exceptions(df_table, exceptions)

        adapter = ImdbSearchAdapter(self._adapter_config("ImdbSearchAdapter"), films=df_query)
        if self.processing_cfg.get("verify_title_exceptions", False):
            hits = adapter.verify_title_exceptions(exceptions)
            bad = {title: n for title, n in hits.items() if n != 1}
            if bad:
                self.logger.warning(f"Titel-Ausnahmen ohne eindeutigen Treffer: {bad}")
            else:
                self.logger.info(f"Alle {len(hits)} Titel-Ausnahmen liefern genau einen Treffer.")

        self.logger.info(f"Starte Anreicherung von {len(df_query)} Filmen (sequentiell)...")
        df_enrichment = adapter.run()
        if adapter.failed_rows:
            self.logger.warning(
                f"{len(adapter.failed_rows)} Filme konnten nicht angereichert werden: "
                f"{[r['title'] for r in adapter.failed_rows][:10]}")
        return merge_enrichment(df_query, df_enrichment)

    def _post_process(self, df_merged: pd.DataFrame) -> pd.DataFrame:
        equivalence = self.processing_cfg.get("content_rating_equivalence")
        df_final = normalize_content_ratings(df_merged, equivalence=equivalence)
        self._validate(df_final, "enriched", "Enriched-DF")
        return df_final

    def _save(self, df_final: pd.DataFrame) -> Path | None:
        if not self.output_cfg.get("save_csv", True):
            self.logger.info("Speichern der Filmtabelle deaktiviert (output.save_csv=false).")
            return None
        csv_path = self._resolve_path(self.output_cfg.get("csv_path", "data/processed/top100_enriched.csv"))
        try:
            CsvLoader(csv_path).load(df_final)
        except OSError as e:
            self.logger.error(
                f"Fehler beim Speichern der Filmtabelle nach {csv_path}: {e}", exc_info=True)
            return None
        return csv_path

    def run(self) -> pd.DataFrame | None:
        """Führt die gesamte Pipeline aus und gibt die finale Tabelle zurück."""
        self.logger.info("Starte Box-Office-Pipeline...")

        df_table = self._extract_table()
        if df_table is None or df_table.empty:
            self.logger.error(
                "Keine Filme aus der Wikipedia-Tabelle geladen. Pipeline wird beendet.")
            return None

        df_merged = self._enrich(df_table)
        if df_merged.empty or df_merged["imdb_rating"].isna().all():
            self.logger.error(
                "Anreicherung lieferte keine Daten. Pipeline wird beendet.")
            return None

        df_final = self._post_process(df_merged)
        self._save(df_final)

        if self.config.get("analysis", {}).get("enabled", True):
            analyzer = FilmAnalyzer(config_path_str=str(self.config_path))
            analyzer.run_analyses(df_final)

        self.logger.info("Box-Office-Pipeline abgeschlossen.")
        return df_final


if __name__ == '__main__':
    # Initialisiert und startet die Pipeline
    pipeline = BoxOfficePipeline(config_filename='config.yaml')
    pipeline.run()
