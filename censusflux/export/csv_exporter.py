"""Write reducer output to CSV next to the input file.

The frame's columns already are the final header (accession, description,
mode-specific fields, channel_1..N), so the exporter only decides the path and
writes. A dataset filtered down to nothing still gets its header row.
"""
from pathlib import Path
from typing import Optional, Union

import polars as pl

from censusflux.utils.utils import log_info, log_time, log_warning


def output_path_for(input_path: Union[str, Path]) -> Path:
    """`x.txt` -> `x.csv`; a `.csv` input gets `_out.csv` so it is never overwritten."""
    input_path = Path(input_path)
    out = input_path.with_suffix(".csv")
    if out == input_path:
        out = input_path.with_name(f"{input_path.stem}_out.csv")
        log_warning(f"Input {input_path} already ends in .csv, writing {out} instead.")
    return out


class CSVExporter:
    def __init__(self, frame: pl.DataFrame, output_path: Union[str, Path], separator: str = ","):
        self.frame = frame
        self.output_path = Path(output_path)
        self.separator = separator

    @log_time("Exporting CSV")
    def export(self) -> Path:
        self.output_path.parent.mkdir(parents=True, exist_ok=True)
        self.frame.write_csv(self.output_path, separator=self.separator, include_header=True)
        log_info(f"Wrote {self.frame.height} row(s) to {self.output_path}")
        return self.output_path


def export_frame(frame: pl.DataFrame, input_path: Union[str, Path], output_path: Optional[Union[str, Path]] = None) -> Path:
    return CSVExporter(frame, output_path or output_path_for(input_path)).export()
