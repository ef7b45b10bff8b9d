"""Command line interface for the map benchmark harness."""

import asyncio
import sys
import time
from pathlib import Path
from typing import List, Optional
import click
from pydantic import ValidationError
from rich.console import Console
from rich.table import Table

from .core.config import ConfigLoader, RunConfig, apply_env_overrides, driver_name, parse_properties
from .core.errors import ProvisioningError
from .core.results import BenchmarkResult
from .core.runner import BenchmarkRunner
from .core.suite import load_suite
from .utils.logging import setup_logging


console = Console()


@click.group()
@click.option('--log-level', default=None, help='Logging level')
@click.option('--log-file', help='Log file path')
@click.pass_context
def cli(ctx, log_level, log_file):
    """Map service benchmark CLI."""
    ctx.ensure_object(dict)
    ctx.obj['log_level'] = log_level
    ctx.obj['log_file'] = log_file


def _build_config(
    config_file: Optional[str],
    overrides: dict,
    args: List[str],
    driver_settings: List[str],
    driver: Optional[str] = None
) -> RunConfig:
    config = ConfigLoader.load_run(config_file) if config_file else RunConfig()
    config = apply_env_overrides(config)

    data = config.dict()
    data.update({k: v for k, v in overrides.items() if v is not None})
    data['args'] = {**config.args, **parse_properties(list(args))}
    if driver_settings:
        data['driver']['config'] = {**config.driver.config, **parse_properties(list(driver_settings))}
    if driver:
        data['driver']['driver_class'] = driver
        data['driver']['name'] = driver_name(driver)
    return RunConfig(**data)


@cli.command()
@click.option('--config', '-c', 'config_file', help='Run configuration file (YAML)')
@click.option('--suite', '-s', help='Benchmark suite class path')
@click.option('--benchmark', '-b', 'benchmarks', multiple=True, help='Benchmark to run (repeatable)')
@click.option('--workers', '-w', type=int, help='Number of parallel workers')
@click.option('--requests', '-n', type=int, help='Iterations per worker, 0 for unbounded')
@click.option('--duration', '-d', type=float, help='Maximum seconds per benchmark')
@click.option('--max-latency', type=float, help='Fail when mean latency exceeds this many ms')
@click.option('--arg', '-a', 'args', multiple=True, help='Benchmark argument key=value (repeatable)')
@click.option('--driver', help='Driver class path')
@click.option('--driver-config', '-D', 'driver_settings', multiple=True, help='Driver setting key=value (repeatable)')
@click.option('--output-dir', '-o', help='Output directory for results')
@click.pass_context
def run(ctx, config_file, suite, benchmarks, workers, requests, duration, max_latency,
        args, driver, driver_settings, output_dir):
    """Run benchmarks."""
    try:
        config = _build_config(
            config_file,
            {
                'suite': suite,
                'benchmarks': list(benchmarks) or None,
                'workers': workers,
                'requests': requests,
                'duration': duration,
                'max_latency_ms': max_latency,
                'results_dir': output_dir,
                'log_level': ctx.obj['log_level'],
                'log_file': ctx.obj['log_file'],
            },
            args,
            driver_settings,
            driver
        )
    except (ValidationError, ValueError, OSError) as e:
        console.print(f"[red]✗ Invalid configuration: {e}[/red]")
        sys.exit(2)

    setup_logging(level=config.log_level, log_file=config.log_file)

    ok = asyncio.run(_run_benchmarks(config))
    sys.exit(0 if ok else 1)


async def _run_benchmarks(config: RunConfig) -> bool:
    """Run benchmarks and report results."""
    try:
        runner = BenchmarkRunner(config)
    except (ImportError, AttributeError, TypeError, ValueError) as e:
        console.print(f"[red]✗ Cannot load suite or driver: {e}[/red]")
        return False

    console.print(f"[bold blue]Running {', '.join(runner.benchmarks)}[/bold blue]")
    console.print(f"[green]✓[/green] Suite: {config.suite}")
    console.print(f"[green]✓[/green] Driver: {config.driver.name} ({config.driver.driver_class})")
    console.print(f"[green]✓[/green] Workers: {config.workers}")

    try:
        results = await runner.run()
    except ProvisioningError as e:
        console.print(f"[red]✗ Provisioning failed: {e}[/red]")
        return False

    output_path = Path(config.results_dir)
    stamp = int(time.time())
    results_file = output_path / f"{config.results_file_prefix}_{stamp}.json"
    csv_file = output_path / f"{config.results_file_prefix}_{stamp}.csv"
    report_file = output_path / f"{config.results_file_prefix}_{stamp}.md"
    runner.result_collector.save_results(results, results_file)
    runner.result_collector.export_csv(results, csv_file)
    report_file.write_text(runner.result_collector.generate_comparison_report(results), encoding='utf-8')
    ConfigLoader.save_config(config, output_path / f"{config.results_file_prefix}_{stamp}.yaml")

    for result in results:
        _display_result(result)

    passed = all(result.passed for result in results)
    if passed:
        console.print("\n[green]✓ All benchmarks passed[/green]")
    else:
        console.print("\n[red]✗ Some benchmarks failed[/red]")
    console.print(f"Results saved to: {results_file}")
    return passed


def _display_result(result: BenchmarkResult) -> None:
    """Display one benchmark result."""
    status = "[green]PASSED[/green]" if result.passed else "[red]FAILED[/red]"
    console.print(f"\n[bold]{result.benchmark}[/bold] {status}")

    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="green")

    table.add_row("Workers", f"{result.total_workers} ({result.aborted_workers} aborted)")
    table.add_row("Iterations", f"{result.total_iterations:,}")
    table.add_row("Duration", f"{result.duration_seconds:.1f}s")

    if result.throughput:
        table.add_row("Throughput", f"{result.throughput.operations_per_second:.0f} ops/s")

    if result.errors:
        table.add_row("Errors", f"{result.errors.total_errors:,} ({result.errors.error_rate:.2%})")
        for kind, count in sorted(result.errors.error_types.items()):
            table.add_row(f"  {kind}", f"{count:,}")

    if result.latency and result.latency.count:
        table.add_row("Mean Latency", f"{result.latency.mean_ms:.3f}ms")
        table.add_row("P50 Latency", f"{result.latency.p50_ms:.3f}ms")
        table.add_row("P99 Latency", f"{result.latency.p99_ms:.3f}ms")
        table.add_row("Max Latency", f"{result.latency.max_ms:.3f}ms")

    console.print(table)

    for worker in result.worker_results:
        if worker.fatal_error:
            console.print(f"  [red]{worker.worker_id}: {worker.fatal_error}[/red]")
    if 'failure' in result.metadata:
        console.print(f"  [red]{result.metadata['failure']}[/red]")


@cli.command()
@click.option('--config', '-c', 'config_file', required=True, help='Run configuration file to validate')
def validate(config_file):
    """Validate a run configuration file."""
    try:
        config = ConfigLoader.load_run(config_file)
        suite_class = load_suite(config.suite)
        benchmarks = [suite_class.normalize_name(b) for b in config.benchmarks] or suite_class.benchmark_names()
    except Exception as e:
        console.print(f"[red]✗ Validation failed: {e}[/red]")
        sys.exit(1)

    console.print(f"[green]✓ Valid configuration: {config_file}[/green]")

    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("Property", style="cyan")
    table.add_column("Value", style="green")

    table.add_row("Suite", config.suite)
    table.add_row("Benchmarks", ", ".join(benchmarks))
    table.add_row("Workers", str(config.workers))
    table.add_row("Requests", str(config.requests) if config.requests else "unbounded")
    table.add_row("Duration", f"{config.duration:g}s")
    table.add_row("Driver", config.driver.driver_class)
    for key, value in sorted(config.args.items()):
        table.add_row(f"arg {key}", str(value))

    console.print(table)


@cli.command(name='list')
@click.option('--suite', '-s', default=RunConfig().suite, help='Benchmark suite class path')
def list_benchmarks(suite):
    """List the benchmarks of a suite."""
    try:
        suite_class = load_suite(suite)
    except (ImportError, AttributeError, TypeError) as e:
        console.print(f"[red]✗ Cannot load suite: {e}[/red]")
        sys.exit(1)

    for name in suite_class.benchmark_names():
        console.print(name)


def main():
    """Entry point for the mapbench CLI."""
    cli()


if __name__ == '__main__':
    main()
