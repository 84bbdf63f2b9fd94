from concurrent.futures import ProcessPoolExecutor
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

from censusflux.export.csv_exporter import export_frame
from censusflux.utils.config import RunConfig
from censusflux.utils.utils import log_info, log_time, log_warning
from censusflux.workflow.aggregation import aggregate
from censusflux.workflow.census_reader import CensusParseError, read_census_file
from censusflux.workflow.filtering import apply_filter


@dataclass
class FileResult:
    input_path: Path
    output_path: Optional[Path] = None
    rows: int = 0
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def convert_file(path: Path, config: RunConfig) -> FileResult:
    """Parse, filter, aggregate and write one census file.

    Parse and I/O failures are reported in the result; FilterConfigError
    propagates since it applies to every file of the run.
    """
    path = Path(path)
    log_info(f"Processing {path}")
    try:
        dataset = read_census_file(path)
    except (OSError, CensusParseError) as e:
        log_warning(f"Error during processing of file {path}: {e}")
        return FileResult(input_path=path, error=str(e))

    filtered = apply_filter(dataset, config.filter, drop_empty=config.drop_empty)
    frame = aggregate(filtered, config.mode, config.aggregation)

    try:
        out = export_frame(frame, path)
    except OSError as e:
        log_warning(f"Error while writing output for {path}: {e}")
        return FileResult(input_path=path, error=str(e))

    return FileResult(input_path=path, output_path=out, rows=frame.height)


@log_time("censusflux run")
def run_pipeline(config: RunConfig) -> List[FileResult]:
    if not config.inputs:
        log_warning("No input files given.")
        return []

    log_info(
        f"Mode={config.mode}, filter={config.filter.name!r} "
        f"({len(config.filter.peptide_filters)} peptide / {len(config.filter.protein_filters)} protein), "
        f"files={len(config.inputs)}, jobs={config.jobs}"
    )

    if config.jobs > 1 and len(config.inputs) > 1:
        # each file is an independent pipeline, nothing shared between workers
        with ProcessPoolExecutor(max_workers=config.jobs) as pool:
            futures = [pool.submit(convert_file, p, config) for p in config.inputs]
            results = [f.result() for f in futures]
    else:
        results = [convert_file(p, config) for p in config.inputs]

    failed = [r for r in results if not r.ok]
    log_info(f"Converted {len(results) - len(failed)}/{len(results)} file(s).")
    return results
