import logging
from pathlib import Path

import pandas as pd

# Standardablage neben dem Paket; die Pipeline übergibt output.aux_output_dir
DEFAULT_AUX_DIR = Path(__file__).resolve().parent.parent / "data" / "intermediate_adapter_outputs"

AUX_KINDS = ("invalid", "duplicates")


def aux_csv_path(kind: str, adapter_name: str, base_dir: str | Path | None = None) -> Path:
    """<base_dir>/<kind>/<adapter_name>_<kind>.csv"""
    if kind not in AUX_KINDS:
        raise ValueError(f"Unbekannte Art verworfener Zeilen: {kind} (erlaubt: {AUX_KINDS})")
    root = Path(base_dir) if base_dir is not None else DEFAULT_AUX_DIR
    return root / kind / f"{adapter_name}_{kind}.csv"


def save_aux_csv(kind: str, adapter_name: str, rows: list[dict] | pd.DataFrame,
                 base_dir: str | Path | None = None) -> Path | None:
    """
    Speichert verworfene Zeilen eines Adapters (ungültig oder doppelt) als CSV.

    Returns:
        Pfad der geschriebenen Datei, None wenn es nichts zu speichern gab.
    """
    df = rows if isinstance(rows, pd.DataFrame) else pd.DataFrame(rows)
    out_path = aux_csv_path(kind, adapter_name, base_dir)
    if df.empty:
        return None
    out_path.parent.mkdir(parents=True, exist_ok=True)
    df.to_csv(out_path, index=False)
    logging.warning(f"{adapter_name}: {len(df)} Zeilen ({kind}) gespeichert unter {out_path}")
    return out_path
