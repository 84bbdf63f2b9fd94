import typer
from pathlib import Path
from typing import List, Optional
from importlib.resources import files

from censusflux.utils.utils import logger, set_verbosity

app = typer.Typer(help="censusflux: Parse, filter, and convert census out files to csv")


@app.command()
def init(path: Path = typer.Argument(Path("censusflux_config.yaml"))):
    """
    Generate a run config scaffold at given path.
    """
    template = files("censusflux").joinpath("templates/run_template.yaml").read_text()

    path.write_text(template)
    typer.echo(f"Template written to {path}")


@app.command("example-filter")
def example_filter_cmd(path: Path = typer.Argument(Path("filter.json"))):
    """
    Write an example filter document (JSON, or YAML for .yaml/.yml paths).
    """
    from censusflux.workflow.filters import example_filter, save_filter

    save_filter(example_filter(), path)
    typer.echo(f"Example filter written to {path}")


@app.command()
def convert(
    inputs: Optional[List[Path]] = typer.Argument(None, help="Census files to convert"),
    peptide: bool = typer.Option(False, "--peptide", "-e", help="Output peptide-level data"),
    protein: bool = typer.Option(False, "--protein", "-r", help="Output protein-level data"),
    flat: bool = typer.Option(False, "--flat", "-F", help="Output completely flat"),
    filter_path: Optional[Path] = typer.Option(None, "--filter", "-f", help="JSON/YAML file containing filters to apply"),
    average: bool = typer.Option(False, "--avg", "-a", help="Average results by number of reported spectral matches, default is sum"),
    float_average: bool = typer.Option(False, "--float-average", help="Use floating-point instead of truncating integer averages"),
    protein_spectral_count: bool = typer.Option(False, "--protein-spectral-count", help="Peptide mode: report the protein's spectral count instead of merged entries"),
    filtered_counts: bool = typer.Option(False, "--filtered-counts", help="Protein mode: report counts of retained peptides instead of parsed counts"),
    keep_empty: bool = typer.Option(False, "--keep-empty", help="Keep proteins whose peptides were all filtered out"),
    jobs: Optional[int] = typer.Option(None, "--jobs", "-j", help="Number of files converted in parallel"),
    config: Optional[Path] = typer.Option(None, "--config", "-c", help="Path to YAML run config"),
    verbose: bool = typer.Option(False, "--verbose", "-v"),
    quiet: bool = typer.Option(False, "--quiet", "-q"),
):
    """
    Convert census files to CSV. Exactly one of --peptide, --protein, --flat is required
    unless the run config provides a mode.
    """
    from censusflux.main import run_pipeline
    from censusflux.utils.config import RunConfig, load_config_file
    from censusflux.workflow.filters import FilterConfigError

    set_verbosity(verbose=verbose, quiet=quiet)

    modes = [m for m, on in (("peptide", peptide), ("protein", protein), ("flat", flat)) if on]
    if len(modes) > 1:
        raise typer.BadParameter("Use only one of --peptide, --protein, --flat.")

    try:
        cfg = load_config_file(config) if config else {}
    except (OSError, ValueError) as e:
        typer.echo(f"Cannot load run config {config}: {e}", err=True)
        raise typer.Exit(code=1)
    base_dir = config.parent if config else Path(".")

    if modes:
        cfg["mode"] = modes[0]
    if cfg.get("mode") is None:
        raise typer.BadParameter("A combine mode is required: --peptide, --protein or --flat.")
    if filter_path is not None:
        cfg["filter"] = str(filter_path.absolute())
    if inputs:
        cfg["inputs"] = [str(p.absolute()) for p in inputs]
    if jobs is not None:
        cfg["jobs"] = jobs
    if keep_empty:
        cfg["drop_empty"] = False

    agg = dict(cfg.get("aggregation") or {})
    if average:
        agg["average"] = True
    if float_average:
        agg["integer_division"] = False
    if protein_spectral_count:
        agg["peptide_spectral_count"] = "protein"
    if filtered_counts:
        agg["protein_counts"] = "filtered"
    cfg["aggregation"] = agg

    try:
        run_config = RunConfig.from_dict(cfg, base_dir=base_dir)
        results = run_pipeline(run_config)
    except FilterConfigError as e:
        logger.error(f"Error while parsing filter configuration: {e}")
        raise typer.Exit(code=1)
    except ValueError as e:
        typer.echo(f"Invalid configuration: {e}", err=True)
        raise typer.Exit(code=2)

    if not results:
        typer.echo("No input files!", err=True)
        raise typer.Exit(code=1)
    if any(not r.ok for r in results):
        raise typer.Exit(code=1)


if __name__ == "__main__":
    app()
