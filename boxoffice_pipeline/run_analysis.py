# boxoffice_pipeline/run_analysis.py
import yaml
import logging
from pathlib import Path
import pandas as pd
import numpy as np
import seaborn as sns
import matplotlib.pyplot as plt
from scipy import stats

from boxoffice_pipeline.loaders.csv_loader import read_enriched_csv
from boxoffice_pipeline.transform.genres import genre_frequency, genre_mask

# --- Globale Stil-Einstellung für Plots ---
plt.style.use('seaborn-v0_8-whitegrid')

DEFAULT_TTEST_GENRE = "Drama"


def _to_float_array(series: pd.Series) -> np.ndarray:
    return pd.to_numeric(series, errors="coerce").to_numpy(dtype=float, na_value=np.nan)


# === Hover-Tooltips für die Scatterplots ===

def nearest_point_index(xs, ys, x: float, y: float,
                        x_span: float = 1.0, y_span: float = 1.0) -> int:
    """
    Index des Punkts mit dem kleinsten euklidischen Abstand zu (x, y).

    Die Achsen werden vorher durch ihre Spannweite geteilt, sonst dominiert
    z.B. die Ticketzahl (~1e8) das Rating (1–10). NaN-Punkte werden ignoriert.

    Raises:
        ValueError: wenn kein gültiger Punkt existiert.
    """
    xs = np.asarray(xs, dtype=float)
    ys = np.asarray(ys, dtype=float)
    x_span = x_span or 1.0
    y_span = y_span or 1.0
    dist = ((xs - x) / x_span) ** 2 + ((ys - y) / y_span) ** 2
    if np.all(np.isnan(dist)):
        raise ValueError("Keine gültigen Punkte für die Abstandssuche.")
    return int(np.nanargmin(dist))


def attach_hover_tooltip(fig, ax, df: pd.DataFrame, x_col: str, y_col: str,
                         label_col: str = "title"):
    """
    Zeigt beim Überfahren des Plots Titel und Jahr des nächstgelegenen Films.

    Die Suche läuft gegen das DataFrame im Speicher (nearest_point_index).
    Gibt den Event-Handler zurück (u.a. für Tests).
    """
    data = df.reset_index(drop=True)
    xs = _to_float_array(data[x_col])
    ys = _to_float_array(data[y_col])

    annot = ax.annotate("", xy=(0, 0), xytext=(12, 12), textcoords="offset points",
                        bbox=dict(boxstyle="round", fc="w", alpha=0.9),
                        arrowprops=dict(arrowstyle="->"))
    annot.set_visible(False)

    def on_move(event):
        if event.inaxes is not ax or event.xdata is None or event.ydata is None:
            if annot.get_visible():
                annot.set_visible(False)
                fig.canvas.draw_idle()
            return
        x_lim, y_lim = ax.get_xlim(), ax.get_ylim()
        idx = nearest_point_index(xs, ys, event.xdata, event.ydata,
                                  x_span=x_lim[1] - x_lim[0], y_span=y_lim[1] - y_lim[0])
        row = data.iloc[idx]
        year = f" ({row['year']})" if "year" in data.columns and pd.notna(row["year"]) else ""
        annot.xy = (xs[idx], ys[idx])
        annot.set_text(f"{row[label_col]}{year}\n{x_col}: {row[x_col]}\n{y_col}: {row[y_col]}")
        annot.set_visible(True)
        fig.canvas.draw_idle()

    fig.canvas.mpl_connect("motion_notify_event", on_move)
    return on_move


# === Plots ===

def plot_rating_vs_tickets(df: pd.DataFrame, output_dir: Path, interactive: bool = False) -> Path:
    """Scatterplot IMDb-Rating vs. verkaufte Tickets."""
    output_dir.mkdir(parents=True, exist_ok=True)
    data = df.dropna(subset=["imdb_rating", "tickets_sold"]).copy()
    data["tickets_mio"] = _to_float_array(data["tickets_sold"]) / 1e6
    data["imdb_rating"] = _to_float_array(data["imdb_rating"])

    fig, ax = plt.subplots(figsize=(9, 6))
    sns.scatterplot(data=data, x="tickets_mio", y="imdb_rating", ax=ax, alpha=0.7)
    ax.set_xlabel("Verkaufte Tickets (Mio.)")
    ax.set_ylabel("IMDb-Rating")
    ax.set_title("IMDb-Rating vs. verkaufte Tickets")
    attach_hover_tooltip(fig, ax, data, "tickets_mio", "imdb_rating")
    plt.tight_layout()

    file_path = output_dir / "scatter_rating_vs_tickets.png"
    fig.savefig(file_path)
    if not interactive:
        plt.close(fig)
    logging.info(f"Scatterplot 'scatter_rating_vs_tickets.png' gespeichert in '{file_path}'.")
    return file_path


def plot_rating_vs_rank(df: pd.DataFrame, output_dir: Path, interactive: bool = False):
    """
    Scatterplot IMDb-Rating vs. Rang mit linearer Trendlinie.

    Returns:
        (Pfad, scipy LinregressResult)
    """
    output_dir.mkdir(parents=True, exist_ok=True)
    data = df.dropna(subset=["imdb_rating", "rank"]).copy()
    data["rank"] = _to_float_array(data["rank"])
    data["imdb_rating"] = _to_float_array(data["imdb_rating"])
    if len(data) < 2:
        raise ValueError("Mindestens zwei Filme mit Rating für die Trendlinie nötig.")

    fit = stats.linregress(data["rank"], data["imdb_rating"])

    fig, ax = plt.subplots(figsize=(9, 6))
    sns.scatterplot(data=data, x="rank", y="imdb_rating", ax=ax, alpha=0.7)
    x_line = np.array([data["rank"].min(), data["rank"].max()])
    ax.plot(x_line, fit.intercept + fit.slope * x_line, color="red", linestyle="--",
            label=f"Trend: y = {fit.intercept:.2f} {fit.slope:+.4f}·x (r = {fit.rvalue:.2f})")
    ax.set_xlabel("Rang (inflationsbereinigtes Einspielergebnis)")
    ax.set_ylabel("IMDb-Rating")
    ax.set_title("IMDb-Rating vs. Rang")
    ax.legend()
    attach_hover_tooltip(fig, ax, data, "rank", "imdb_rating")
    plt.tight_layout()

    file_path = output_dir / "scatter_rating_vs_rank.png"
    fig.savefig(file_path)
    if not interactive:
        plt.close(fig)
    logging.info(f"Scatterplot 'scatter_rating_vs_rank.png' gespeichert in '{file_path}'.")
    return file_path, fit


def plot_runtime_histogram(df: pd.DataFrame, output_dir: Path, bins: int = 20) -> Path:
    """Histogramm der Laufzeiten (statisch)."""
    output_dir.mkdir(parents=True, exist_ok=True)
    runtimes = pd.Series(_to_float_array(df["runtime_min"])).dropna()

    fig, ax = plt.subplots(figsize=(9, 6))
    sns.histplot(runtimes, bins=bins, ax=ax, kde=False)
    ax.axvline(runtimes.mean(), color="red", linestyle="--", label=f"Mittelwert: {runtimes.mean():.1f} min")
    ax.set_xlabel("Laufzeit (Minuten)")
    ax.set_ylabel("Anzahl Filme")
    ax.set_title("Verteilung der Laufzeiten")
    ax.legend()
    plt.tight_layout()

    file_path = output_dir / "hist_runtime.png"
    fig.savefig(file_path)
    plt.close(fig)
    logging.info(f"Histogramm 'hist_runtime.png' gespeichert in '{file_path}'.")
    return file_path


# === Statistik ===

def get_descriptive_statistics(df: pd.DataFrame, cols_map: dict) -> pd.DataFrame:
    """
    Berechnet deskriptive Statistiken für angegebene Spalten.
    Args:
        df: DataFrame, das die Spalten enthält.
        cols_map: Dictionary {'Spaltenname_im_df': 'Anzeigename_im_Bericht'}
    Returns:
        DataFrame mit Statistiken.
    """
    result = {}
    for col_name, display_name in cols_map.items():
        if col_name in df.columns:
            series = pd.Series(_to_float_array(df[col_name])).dropna()
            if not series.empty:
                result[display_name] = {
                    'mean': series.mean(),
                    'std': series.std(),
                    'min': series.min(),
                    'max': series.max(),
                    'median': series.median(),
                    'count': series.count()
                }
            else:
                result[display_name] = {k: np.nan for k in ['mean', 'std', 'min', 'max', 'median', 'count']}
        else:
            logging.warning(f"Statistik-Spalte '{col_name}' nicht im DataFrame gefunden.")
    return pd.DataFrame(result).T.round(2)


def welch_ttest(df: pd.DataFrame, genre: str, value_col: str = "runtime_min",
                confidence_level: float = 0.95) -> dict:
    """
    Welch-t-Test (ungleiche Varianzen): Filme mit `genre` vs. alle übrigen.

    Returns:
        Dict mit statistic, df, pvalue (zweiseitig), ci_low/ci_high
        (Konfidenzintervall der Mittelwertdifferenz Gruppe − Rest),
        Gruppengrößen und -mittelwerten.

    Raises:
        ValueError: wenn eine der Gruppen weniger als zwei Werte hat.
    """
    values = pd.Series(_to_float_array(df[value_col]), index=df.index)
    mask = genre_mask(df, genre)
    group = values[mask].dropna().to_numpy()
    rest = values[~mask].dropna().to_numpy()
    if len(group) < 2 or len(rest) < 2:
        raise ValueError(
            f"Welch-Test braucht je mindestens 2 Werte (Genre '{genre}': {len(group)}, Rest: {len(rest)}).")

    res = stats.ttest_ind(group, rest, equal_var=False)
    ci = res.confidence_interval(confidence_level=confidence_level)
    result = {
        "genre": genre,
        "value_col": value_col,
        "statistic": float(res.statistic),
        "df": float(res.df),
        "pvalue": float(res.pvalue),
        "confidence_level": confidence_level,
        "ci_low": float(ci.low),
        "ci_high": float(ci.high),
        "n_group": int(len(group)),
        "n_rest": int(len(rest)),
        "mean_group": float(group.mean()),
        "mean_rest": float(rest.mean()),
    }
    logging.info(
        f"Welch-t-Test {value_col} ('{genre}' vs. Rest): t = {result['statistic']:.2f}, "
        f"df = {result['df']:.1f}, p = {result['pvalue']:.4f}")
    return result


# === Bericht ===

def generate_report(
    df: pd.DataFrame,
    report_path: Path,
    stats_df: pd.DataFrame,
    genre_counts: pd.Series,
    trend,
    ttest: dict | None,
    figures: dict[str, Path],
    source_url: str | None = None,
) -> Path:
    """Schreibt das Analysedokument (Markdown) mit Erzähltext, Tabellen und Abbildungen."""
    report_path.parent.mkdir(parents=True, exist_ok=True)
    lines = []
    lines.append("# Die 100 erfolgreichsten Kinofilme – Ratings, Laufzeiten, Genres")
    lines.append("")
    lines.append(f"_Erstellt am {pd.Timestamp.now().strftime('%Y-%m-%d %H:%M:%S')}_")
    lines.append("")
    lines.append("## Daten")
    lines.append("")
    source = f" ({source_url})" if source_url else ""
    lines.append(
        f"Die Tabelle der umsatzstärksten Filme (inflationsbereinigt) wurde von Wikipedia{source} "
        f"gelesen und enthält {len(df)} Filme. Jeder Film wurde anschließend über die IMDb-Titelsuche "
        "um Rating, Altersfreigabe, Laufzeit und Genres ergänzt.")
    enriched = int(pd.to_numeric(df.get("imdb_rating"), errors="coerce").notna().sum()) \
        if "imdb_rating" in df.columns else 0
    lines.append("")
    lines.append(f"Erfolgreich angereichert: {enriched} von {len(df)} Filmen.")
    lines.append("")

    lines.append("## Deskriptive Statistik")
    lines.append("")
    lines.append("| Größe | Mittelwert | Std | Min | Median | Max | n |")
    lines.append("|---|---|---|---|---|---|---|")
    for name, row in stats_df.iterrows():
        lines.append(
            f"| {name} | {row['mean']} | {row['std']} | {row['min']} | {row['median']} | {row['max']} | {row['count']} |")
    lines.append("")

    if "content_rating" in df.columns:
        lines.append("## Altersfreigaben")
        lines.append("")
        lines.append("Filme ohne Zertifikat auf IMDb wurden nach der historischen Regel "
                     "(\"M\"/\"GP\" vor 1972 → \"PG\") als PG eingestuft.")
        lines.append("")
        for rating, n in df["content_rating"].value_counts().items():
            lines.append(f"- {rating}: {n}")
        lines.append("")

    lines.append("## Genres")
    lines.append("")
    lines.append("| Genre | Filme |")
    lines.append("|---|---|")
    for genre, n in genre_counts.items():
        lines.append(f"| {genre} | {n} |")
    lines.append("")

    lines.append("## Abbildungen")
    lines.append("")
    for caption, path in figures.items():
        rel = Path(path).name if Path(path).parent == report_path.parent else Path(path)
        lines.append(f"![{caption}]({rel})")
        lines.append("")

    if trend is not None:
        lines.append("## Rating und Rang")
        lines.append("")
        lines.append(
            f"Lineare Regression des Ratings auf den Rang: Steigung {trend.slope:+.4f} pro Rang, "
            f"Achsenabschnitt {trend.intercept:.2f}, r = {trend.rvalue:.2f}, p = {trend.pvalue:.4f}.")
        lines.append("")

    if ttest is not None:
        lines.append("## Laufzeit nach Genre (Welch-t-Test)")
        lines.append("")
        lines.append(
            f"Filme mit Genre '{ttest['genre']}' (n = {ttest['n_group']}, Mittel {ttest['mean_group']:.1f} min) "
            f"vs. übrige Filme (n = {ttest['n_rest']}, Mittel {ttest['mean_rest']:.1f} min).")
        lines.append("")
        lines.append(f"- t = {ttest['statistic']:.2f}")
        lines.append(f"- Freiheitsgrade = {ttest['df']:.1f}")
        lines.append(f"- p (zweiseitig) = {ttest['pvalue']:.4f}")
        lines.append(
            f"- {ttest['confidence_level']:.0%}-Konfidenzintervall der Differenz: "
            f"[{ttest['ci_low']:.1f}, {ttest['ci_high']:.1f}] min")
        lines.append("")

    lines.append("## Einschränkungen")
    lines.append("")
    lines.append("- Die Titel-Ausnahmeliste ist handgepflegt und skaliert nicht; ein Fuzzy-Abgleich "
                 "mit Schwellwert und manueller Prüfung wäre robuster.")
    lines.append("- Beide Quellen sind Live-Seiten: ein erneuter Lauf liefert nur bei unveränderten "
                 "Seiten dieselbe Tabelle.")

    report_path.write_text("\n".join(lines) + "\n", encoding="utf-8")
    logging.info(f"Analysebericht gespeichert unter: {report_path}")
    return report_path


# === Haupt-Analyseklasse und Ausführung ===

class FilmAnalyzer:
    def __init__(self, config_path_str: str = 'config.yaml'):
        self.config_path = Path(config_path_str)
        if not self.config_path.exists():
            # Fallback: config.yaml neben diesem Modul
            alt_config_path = Path(__file__).resolve().parent / config_path_str
            if alt_config_path.exists():
                self.config_path = alt_config_path
            else:
                raise FileNotFoundError(f"Konfigurationsdatei nicht gefunden: {config_path_str} oder {alt_config_path}")

        with open(self.config_path, 'r', encoding='utf-8') as f:
            self.cfg = yaml.safe_load(f) or {}

        log_level_str = self.cfg.get('logging', {}).get('level', 'INFO').upper()
        logging.basicConfig(level=getattr(logging, log_level_str, logging.INFO),
                            format='%(asctime)s - %(levelname)s - %(message)s')

        self.output_cfg = self.cfg.get('output', {})
        self.analysis_cfg = self.cfg.get('analysis', {})

    def _resolve_path(self, path_str: str | Path) -> Path:
        """ Löst einen Pfad relativ zum Konfigurationsdatei-Verzeichnis auf, wenn er relativ ist. """
        path_obj = Path(path_str)
        if path_obj.is_absolute():
            return path_obj
        return (self.config_path.parent / path_obj).resolve()

    def load_data(self) -> pd.DataFrame | None:
        csv_path = self._resolve_path(self.output_cfg.get("csv_path", "data/processed/top100_enriched.csv"))
        try:
            df = read_enriched_csv(csv_path)
        except FileNotFoundError:
            logging.error(f"Angereicherte Filmtabelle NICHT gefunden: {csv_path}")
            return None
        logging.info(f"Angereicherte Filmtabelle geladen von: {csv_path} ({len(df)} Zeilen)")
        return df

    def run_analyses(self, df: pd.DataFrame | None = None) -> dict:
        logging.info("Starte Filmdaten-Analyse...")
        if df is None:
            df = self.load_data()
        if df is None or df.empty:
            logging.critical("Kritisch: keine angereicherte Filmtabelle vorhanden. Analyse abgebrochen.")
            return {}

        output_dir = self._resolve_path(self.analysis_cfg.get("output_dir", "data/analysis"))
        output_dir.mkdir(parents=True, exist_ok=True)
        report_path = self._resolve_path(self.analysis_cfg.get("report_path", "data/analysis/report.md"))
        interactive = bool(self.analysis_cfg.get("interactive", False))

        # 1. Deskriptive Statistik
        stats_cols_map = {
            'imdb_rating': 'IMDb-Rating', 'runtime_min': 'Laufzeit (min)',
            'tickets_sold': 'Verkaufte Tickets', 'adjusted_gross': 'Einspielergebnis (bereinigt, $)'
        }
        stats_df = get_descriptive_statistics(df, stats_cols_map)
        stats_df.to_csv(output_dir / "stats_descriptive.csv")
        logging.info(f"Deskriptive Statistik gespeichert. Inhalt:\n{stats_df}")

        # 2. Genre-Häufigkeiten
        genre_counts = genre_frequency(df)
        genre_counts.to_csv(output_dir / "genre_frequency.csv")
        logging.info(f"Genre-Häufigkeiten:\n{genre_counts}")

        # 3. Plots
        figures: dict[str, Path] = {}
        trend = None
        figures["IMDb-Rating vs. verkaufte Tickets"] = plot_rating_vs_tickets(df, output_dir, interactive)
        try:
            figures["IMDb-Rating vs. Rang"], trend = plot_rating_vs_rank(df, output_dir, interactive)
        except ValueError as e:
            logging.warning(f"Trendlinie nicht möglich: {e}")
        figures["Verteilung der Laufzeiten"] = plot_runtime_histogram(
            df, output_dir, bins=int(self.analysis_cfg.get("histogram_bins", 20)))

        # 4. Welch-t-Test
        ttest = None
        genre = self.analysis_cfg.get("ttest_genre", DEFAULT_TTEST_GENRE)
        try:
            ttest = welch_ttest(df, genre, confidence_level=float(self.analysis_cfg.get("confidence_level", 0.95)))
        except ValueError as e:
            logging.warning(f"Welch-t-Test nicht möglich: {e}")

        # 5. Bericht
        source_url = self.cfg.get("sources", {}).get("WikipediaAdapter", {}).get("url")
        generate_report(df, report_path, stats_df, genre_counts, trend, ttest, figures, source_url)

        if interactive:
            # Scatterplots mit Hover-Tooltips anzeigen (blockiert bis zum Schließen)
            plt.show()

        logging.info(f"Analyse abgeschlossen. Ergebnisse in '{output_dir}'.")
        return {"stats": stats_df, "genre_counts": genre_counts, "trend": trend,
                "ttest": ttest, "figures": figures, "report": report_path}


if __name__ == '__main__':
    analyzer = FilmAnalyzer(config_path_str="config.yaml")
    analyzer.run_analyses()
