"""
cli.py - Command Line Interface for State-Space Lab

Run the slide simulators from the shell and inspect sensor readings.

Usage:
    statespace-lab --help
    statespace-lab ar1 --periods 500 --phi 0.1 --sigma 0.2 --seed 1
    statespace-lab isv --periods 500 --output isv.csv
    statespace-lab factor --series 6 --factors 2 --validate
    statespace-lab fsv --spec spec.npz --v 0.1 --noise independent
    statespace-lab readings sensor_readings.csv
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import numpy as np
import pandas as pd
import typer
from loguru import logger
from rich.console import Console
from rich.table import Table
from rich.panel import Panel
from rich import box

from .types import AR1Params, FactorModelSpec, InvalidArgumentError, NoiseMode

app = typer.Typer(
    name="statespace-lab",
    help="State-Space Lab: AR(1), stochastic-volatility and factor model simulators",
    add_completion=False,
    rich_markup_mode="rich",
)
console = Console()

DEFAULT_SERIES = 6
DEFAULT_FACTORS = 2


# =============================================================================
# UTILITY FUNCTIONS
# =============================================================================

def fail(message: str) -> None:
    """Report a rejected command and exit with status 1."""
    logger.error(message)
    console.print(f"[red]Error:[/red] {message}")
    raise typer.Exit(1)


def resolve_spec(
    spec_file: Optional[Path],
    series: Optional[int],
    factors: Optional[int],
    idio_var: float,
    rng: np.random.Generator,
) -> FactorModelSpec:
    """
    Load a spec from disk, or draw loadings ~ N(0, 1) with constant idio variance.

    A spec file fixes p and k, so explicit --series/--factors are rejected with it.
    """
    from .io import load_spec
    from .samplers import DistributionFactory, SpecSampler

    if spec_file is not None:
        if series is not None or factors is not None:
            fail("--series/--factors cannot be combined with --spec")
        if not spec_file.exists():
            fail(f"Spec file not found: {spec_file}")
        return load_spec(spec_file)

    factory = DistributionFactory(rng=rng)
    series = DEFAULT_SERIES if series is None else series
    factors = DEFAULT_FACTORS if factors is None else factors
    return SpecSampler(p=series, k=factors).configure(
        beta=factory.create("normal", std=1.0),
        idio_var=factory.create("constant", value=idio_var),
    ).generate()


def print_series_summary(frame: pd.DataFrame, title: str, max_rows: int = 10) -> None:
    """Print mean/std/min/max for each non-time column."""
    table = Table(title=title, box=box.ROUNDED, title_style="bold cyan")
    table.add_column("Series", style="cyan")
    for name in ("Mean", "Std Dev", "Min", "Max"):
        table.add_column(name, justify="right")

    columns = [c for c in frame.columns if c != "time"]
    for col in columns[:max_rows]:
        values = frame[col].to_numpy(dtype=float)
        table.add_row(
            str(col),
            f"{np.nanmean(values):.4f}",
            f"{np.nanstd(values):.4f}",
            f"{np.nanmin(values):.4f}",
            f"{np.nanmax(values):.4f}",
        )
    if len(columns) > max_rows:
        table.add_row("...", f"({len(columns) - max_rows} more)", "", "", "")

    console.print(table)


def write_output(frame: pd.DataFrame, output: Optional[Path]) -> None:
    if output:
        frame.to_csv(output, index=False)
        console.print(f"\n  Saved to: [bold]{output}[/bold]")


# =============================================================================
# COMMANDS
# =============================================================================

@app.command()
def ar1(
    periods: int = typer.Option(500, "--periods", "-n", help="Path length"),
    phi: float = typer.Option(0.1, "--phi", help="Persistence"),
    sigma: float = typer.Option(0.2, "--sigma", help="Innovation scale"),
    mu: float = typer.Option(0.0, "--mu", help="Mean-reversion level"),
    seed: Optional[int] = typer.Option(None, "--seed", "-s", help="Random seed for reproducibility"),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Output CSV file"),
):
    """
    Simulate a mean-reverting AR(1) path.

    Example:
        statespace-lab ar1 -n 1000 --phi 0.05 --seed 42 -o ar1.csv
    """
    from .simulation import generate_ar1

    console.print(Panel.fit("[bold]AR(1) Path[/bold]", border_style="blue"))

    rng = np.random.default_rng(seed)
    try:
        x = generate_ar1(periods, phi, sigma, mu, rng)
    except InvalidArgumentError as e:
        fail(str(e))

    frame = pd.DataFrame({"time": np.arange(1, periods + 1), "x": x})
    print_series_summary(frame, "AR(1) Statistics")
    write_output(frame, output)


@app.command()
def isv(
    periods: int = typer.Option(500, "--periods", "-n", help="Series length"),
    phi: float = typer.Option(0.1, "--phi", help="Log-volatility persistence"),
    sigma: float = typer.Option(0.2, "--sigma", help="Log-volatility innovation scale"),
    mu: float = typer.Option(0.0, "--mu", help="Log-volatility mean level"),
    seed: Optional[int] = typer.Option(None, "--seed", "-s", help="Random seed for reproducibility"),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Output CSV file"),
):
    """
    Simulate an independent stochastic-volatility series.

    Example:
        statespace-lab isv -n 1000 --sigma 0.3 --seed 1 -o isv.csv
    """
    from .simulation import generate_ar1, generate_isv

    console.print(Panel.fit("[bold]Stochastic Volatility[/bold]", border_style="blue"))

    rng = np.random.default_rng(seed)
    try:
        alpha = generate_ar1(periods, phi, sigma, mu, rng)
        result = generate_isv(periods, alpha, rng)
    except InvalidArgumentError as e:
        fail(str(e))

    frame = result.to_frame()
    print_series_summary(frame, "ISV Statistics")
    write_output(frame, output)


@app.command()
def factor(
    periods: int = typer.Option(500, "--periods", "-n", help="Number of observations"),
    series: Optional[int] = typer.Option(None, "--series", "-p", help="Number of observed series (default 6; not with --spec)"),
    factors: Optional[int] = typer.Option(None, "--factors", "-k", help="Number of latent factors (default 2; not with --spec)"),
    spec_file: Optional[Path] = typer.Option(None, "--spec", help="Spec file (.npz or .json) instead of random loadings"),
    idio_var: float = typer.Option(0.1, "--idio-var", help="Idiosyncratic variance for random specs"),
    seed: Optional[int] = typer.Option(None, "--seed", "-s", help="Random seed for reproducibility"),
    validate: bool = typer.Option(False, "--validate", help="Compare empirical and implied covariance"),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Output CSV file"),
):
    """
    Simulate the static factor-analysis model.

    Example:
        statespace-lab factor -n 5000 -p 6 -k 2 --validate
    """
    from .simulation import CovarianceValidator, generate_factor_model

    console.print(Panel.fit("[bold]Factor Analysis[/bold]", border_style="blue"))

    rng = np.random.default_rng(seed)
    try:
        spec = resolve_spec(spec_file, series, factors, idio_var, rng)
        result = generate_factor_model(periods, spec.p, spec.k, spec.beta, spec.sigma, rng)
    except ValueError as e:
        fail(str(e))

    console.print(f"  Model: [cyan]{spec.k}[/cyan] factors, [cyan]{spec.p}[/cyan] series\n")

    frame = pd.DataFrame(result.y, columns=[f"y{j + 1}" for j in range(spec.p)])
    print_series_summary(frame, "Factor Model Statistics")

    if validate:
        try:
            validation = CovarianceValidator(spec).compare(result.y)
        except InvalidArgumentError as e:
            fail(str(e))

        console.print("\n[bold]Covariance Validation:[/bold]")
        val_table = Table.grid(padding=(0, 2))
        val_table.add_column(style="dim")
        val_table.add_column()
        val_table.add_row("Frobenius Error:", f"{validation.frobenius_error:.4f}")
        val_table.add_row("Mean Abs Error:", f"{validation.mean_absolute_error:.6f}")
        val_table.add_row("Explained Var:", f"{validation.explained_variance_ratio:.1%}")
        console.print(val_table)

    frame.insert(0, "time", np.arange(1, periods + 1))
    write_output(frame, output)


@app.command()
def fsv(
    periods: int = typer.Option(500, "--periods", "-n", help="Number of time steps"),
    series: Optional[int] = typer.Option(None, "--series", "-p", help="Number of observed series (default 6; not with --spec)"),
    factors: Optional[int] = typer.Option(None, "--factors", "-k", help="Number of latent factors (default 2; not with --spec)"),
    spec_file: Optional[Path] = typer.Option(None, "--spec", help="Spec file whose beta is used as the loading matrix"),
    v: float = typer.Option(0.1, "--v", help="Observation variance"),
    phi: float = typer.Option(0.1, "--phi", help="Log-volatility persistence"),
    sigma: float = typer.Option(0.2, "--sigma", help="Log-volatility innovation scale"),
    mu: float = typer.Option(0.0, "--mu", help="Log-volatility mean level"),
    noise: NoiseMode = typer.Option(NoiseMode.SHARED, "--noise", help="Observation noise layout"),
    seed: Optional[int] = typer.Option(None, "--seed", "-s", help="Random seed for reproducibility"),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Output CSV file"),
):
    """
    Simulate the factor stochastic-volatility model.

    Example:
        statespace-lab fsv -n 1000 -p 6 -k 2 --noise independent -o fsv.csv
    """
    from .simulation import FactorSVSimulator
    from .types import FactorSVResult

    console.print(Panel.fit("[bold]Factor Stochastic Volatility[/bold]", border_style="blue"))

    rng = np.random.default_rng(seed)
    try:
        # only beta is used; observation noise comes from v
        spec = resolve_spec(spec_file, series, factors, 0.0, rng)
        simulator = FactorSVSimulator(
            spec.beta, v=v, volatility=AR1Params(phi=phi, sigma=sigma, mu=mu),
            rng=rng, noise=noise,
        )
        results = simulator.simulate(periods)
    except ValueError as e:
        fail(str(e))

    console.print(
        f"  Model: [cyan]{simulator.k}[/cyan] factors, [cyan]{simulator.p}[/cyan] series, "
        f"noise: [cyan]{simulator.noise.value}[/cyan]\n"
    )

    frame = FactorSVResult(time=results["time"], y=results["observations"]).to_frame()
    print_series_summary(frame, "Factor SV Statistics")
    write_output(frame, output)


@app.command()
def readings(
    input_file: Path = typer.Argument(..., help="CSV with Timestamp, Variable, Units, Value columns"),
):
    """
    Summarize a sensor readings file per variable.

    Example:
        statespace-lab readings data/sensor_readings.csv
    """
    from .io import load_readings

    console.print(Panel.fit("[bold]Sensor Readings[/bold]", border_style="blue"))

    try:
        data = load_readings(input_file)
    except (FileNotFoundError, ValueError) as e:
        fail(str(e))

    console.print(
        f"  Loaded [cyan]{len(data)}[/cyan] readings from "
        f"{data['Timestamp'].min()} to {data['Timestamp'].max()}\n"
    )

    table = Table(title="Variables", box=box.ROUNDED, title_style="bold cyan")
    table.add_column("Variable", style="cyan")
    table.add_column("Units", style="dim")
    table.add_column("Count", justify="right")
    table.add_column("Mean", justify="right")
    table.add_column("Min", justify="right")
    table.add_column("Max", justify="right")

    for name, group in data.groupby("Variable", sort=True):
        values = group["Value"]
        table.add_row(
            str(name),
            ", ".join(sorted(group["Units"].astype(str).unique())),
            str(int(values.count())),
            f"{values.mean():.3f}",
            f"{values.min():.3f}",
            f"{values.max():.3f}",
        )

    console.print(table)


@app.command()
def version():
    """Show version information."""
    from . import __version__

    console.print(Panel(
        f"[bold cyan]State-Space Lab[/bold cyan] v{__version__}\n\n"
        "Forward simulators for AR(1), stochastic-volatility\n"
        "and factor models of sensor time series.",
        border_style="cyan"
    ))


# =============================================================================
# ENTRY POINT
# =============================================================================

def main():
    """Main entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
