from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, List, Optional, Union

import yaml

from censusflux.workflow.aggregation import AggregationOptions
from censusflux.workflow.filters import Filter, FilterConfigError, load_filter
from censusflux.utils.semantics import normalize_mode


@dataclass
class RunConfig:
    """Everything one conversion run needs, built from the YAML run config and CLI flags."""
    mode: str
    inputs: List[Path] = field(default_factory=list)
    filter: Filter = field(default_factory=Filter)
    aggregation: AggregationOptions = field(default_factory=AggregationOptions)
    drop_empty: bool = True
    jobs: int = 1

    @classmethod
    def from_dict(cls, cfg: dict, base_dir: Optional[Path] = None) -> "RunConfig":
        """
        Build a RunConfig from a mapping mirroring `run_template.yaml`.

        Args:
            cfg: dict with keys mode, inputs, filter, aggregation, drop_empty, jobs
            base_dir: directory relative filter/input paths are resolved against

        Raises:
            FilterConfigError: the filter section (or file it points to) is malformed.
            ValueError: any other invalid setting.
        """
        cfg = cfg or {}
        base_dir = Path(base_dir) if base_dir is not None else Path(".")

        def _resolve(p: Union[str, Path]) -> Path:
            p = Path(p)
            return p if p.is_absolute() else base_dir / p

        raw_filter = cfg.get("filter")
        if raw_filter is None:
            flt = Filter()
        elif isinstance(raw_filter, (str, Path)):
            flt = load_filter(_resolve(raw_filter))
        elif isinstance(raw_filter, dict):
            flt = Filter.from_dict(raw_filter)
        else:
            raise FilterConfigError(f"'filter' must be a path or a mapping, got {raw_filter!r}")

        jobs = cfg.get("jobs", 1) or 1
        if isinstance(jobs, bool) or not isinstance(jobs, int) or jobs < 1:
            raise ValueError(f"jobs must be a positive integer, got {jobs!r}")

        return cls(
            mode=normalize_mode(cfg.get("mode")),
            inputs=[_resolve(p) for p in (cfg.get("inputs") or [])],
            filter=flt,
            aggregation=AggregationOptions.from_dict(cfg.get("aggregation")),
            drop_empty=bool(cfg.get("drop_empty", True)),
            jobs=jobs,
        )


def load_config_file(path: Union[str, Path]) -> dict:
    path = Path(path)
    try:
        cfg = yaml.safe_load(path.read_text()) or {}
    except yaml.YAMLError as e:
        raise ValueError(f"Error while parsing {path}: {e}") from e
    if not isinstance(cfg, dict):
        raise ValueError(f"{path}: run config must be a mapping")
    return cfg
