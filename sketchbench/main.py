from __future__ import annotations

import asyncio
import sys
from pathlib import Path
from typing import Optional

import typer

from sketchbench.config import get_settings
from sketchbench.errors import BackendUnavailable
from sketchbench.infrastructure.reset import known_backends, reset_backends
from sketchbench.orchestrator import RunConfig, available_strategies, run_benchmark
from sketchbench.reporter import print_report
from sketchbench.utils.logging import configure_logging

app = typer.Typer(help="Benchmark exact vs. probabilistic token analytics backends.")

EXIT_SETUP_FAILURE = 2


@app.command()
def info() -> None:
    """
    Show effective configuration values.
    """
    settings = get_settings()
    typer.echo(
        f"Postgres={settings.db_user}@{settings.db_host}:{settings.db_port}/{settings.db_name} | "
        f"Redis={settings.redis_host}:{settings.redis_port}/{settings.redis_db} | "
        f"corpus={settings.corpus_path}"
    )
    typer.echo(
        f"probe='{settings.benchmark_probe_token}' k={settings.benchmark_top_k} "
        f"batch={settings.benchmark_batch_size} concurrency={settings.benchmark_concurrency} "
        f"timeout={settings.benchmark_timeout_seconds}"
    )


@app.command()
def run(
    strategy: str = typer.Option(
        "all",
        "--strategy",
        "--strategies",
        "-s",
        help=(
            "Comma-separated strategies to run (postgres_unindexed, postgres_indexed, "
            "redis_sorted_set, redis_probabilistic), 'all', or 'list'."
        ),
    ),
    corpus: Optional[Path] = typer.Option(
        None,
        "--corpus",
        "-c",
        help="Corpus text file (default from settings).",
    ),
    probe: Optional[str] = typer.Option(
        None,
        "--probe",
        "-p",
        help="Token used for presence and count queries.",
    ),
    top_k: Optional[int] = typer.Option(
        None,
        "--top-k",
        "-k",
        help="k for the top-K query (also the tracker capacity).",
    ),
    timeout: Optional[float] = typer.Option(
        None,
        "--timeout",
        help="Per-operation deadline in seconds.",
    ),
    strict: bool = typer.Option(
        False,
        "--strict",
        help="Abort on the first failed operation instead of recording it.",
    ),
    no_reset: bool = typer.Option(
        False,
        "--no-reset",
        help="Skip wiping the backends before the run.",
    ),
    as_json: bool = typer.Option(
        False,
        "--json",
        help="Print the report as JSON instead of tables.",
    ),
) -> None:
    """
    Run the benchmark once over all selected strategies and print the results.
    """
    settings = get_settings()
    configure_logging(level=settings.log_level, json_logs=settings.log_json)

    if strategy == "list":
        typer.echo("Available strategies: " + ", ".join(available_strategies()))
        return

    names = [name.strip() for name in strategy.split(",") if name.strip()]
    config = RunConfig(
        strategy_names=names or ["all"],
        corpus_path=corpus,
        probe_token=probe,
        top_k=top_k,
        operation_timeout_seconds=timeout,
        failure_policy="strict" if strict else "tolerant",
        reset_backends=not no_reset,
    )

    try:
        report = run_benchmark(config)
    except FileNotFoundError as exc:
        typer.echo(f"Corpus not found: {exc.filename}", err=True)
        raise typer.Exit(code=EXIT_SETUP_FAILURE)
    except BackendUnavailable as exc:
        typer.echo(f"Backend unavailable, run aborted: {exc}", err=True)
        raise typer.Exit(code=EXIT_SETUP_FAILURE)
    except ValueError as exc:
        typer.echo(str(exc), err=True)
        raise typer.Exit(code=1)

    if as_json:
        typer.echo(report.model_dump_json(indent=2))
    else:
        print_report(report)


@app.command()
def reset(
    backend: str = typer.Option(
        "all",
        "--backend",
        "-b",
        help="Backend to wipe (postgres, redis, all).",
    ),
) -> None:
    """
    Wipe backend storage (drop the public schema / FLUSHDB) without running a benchmark.
    """
    settings = get_settings()
    configure_logging(level=settings.log_level, json_logs=settings.log_json)
    backends = known_backends() if backend == "all" else [backend]
    try:
        done = asyncio.run(reset_backends(backends))
    except BackendUnavailable as exc:
        typer.echo(f"Backend unavailable: {exc}", err=True)
        raise typer.Exit(code=EXIT_SETUP_FAILURE)
    typer.echo("Reset: " + (", ".join(done) if done else "nothing"))


def main() -> None:
    try:
        app()
    except KeyboardInterrupt:
        typer.echo("Cancelled by user.", err=True)
        sys.exit(130)


if __name__ == "__main__":
    main()
