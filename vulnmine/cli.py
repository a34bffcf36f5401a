#!/usr/bin/env python3
"""
vulnmine CLI

Mines security-fix commits from Java repositories and writes a labelled,
deduplicated, stratified dataset.

Usage:
    vulnmine build --repos-dir data/repos --out-dir dataset
    vulnmine build --commits-file commits.jsonl --augment
    vulnmine validate dataset
    vulnmine stats dataset
    vulnmine rules --category XSS
    vulnmine classify "Fix XSS in search page"
    vulnmine init
    vulnmine version
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import Annotated, Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table

from vulnmine.config import Config
from vulnmine.data.categories import all_rules, get_rules
from vulnmine.data.classify import classify_message, matching_keywords
from vulnmine.data.pipeline import MiningPipeline, PipelineAudit, PipelineOptions
from vulnmine.data.schema import Category, export_schema_json
from vulnmine.data.scoring import is_strong_message
from vulnmine.data.sources import GitCommitSource, JsonCommitSource, iter_repositories, materialize
from vulnmine.data.stats import build_statistics
from vulnmine.data.validate import validate_dataset
from vulnmine.data.writer import load_statistics, write_dataset
from vulnmine.exceptions import CommitSourceError, ConfigError, DatasetFormatError, VulnMineError
from vulnmine.version import (
    EXIT_CONFIG_ERROR,
    EXIT_ERROR,
    EXIT_INVALID,
    EXIT_SUCCESS,
    SPLIT_NAMES,
    __app_name__,
    __description__,
    __version__,
)

console = Console()
err_console = Console(stderr=True)

app = typer.Typer(
    name="vulnmine",
    help=f"{__app_name__} - {__description__}",
    add_completion=False,
    no_args_is_help=True,
    rich_markup_mode="rich",
)


def version_callback(value: bool) -> None:
    """Show version and exit."""
    if value:
        console.print(f"[bold blue]{__app_name__}[/bold blue] version [green]{__version__}[/green]")
        raise typer.Exit()


def _setup_logging(verbose: bool, quiet: bool) -> None:
    level = logging.DEBUG if verbose else logging.WARNING if quiet else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=err_console, show_path=False)],
        force=True,
    )


def _print_audit(audit: PipelineAudit) -> None:
    table = Table(title="Pipeline Audit", show_header=True, header_style="bold cyan")
    table.add_column("Stage", style="dim")
    table.add_column("Count", justify="right")

    table.add_row("Commits seen", str(audit.commits_seen))
    table.add_row("Commits malformed", str(audit.commits_malformed))
    table.add_row("Commits without category", str(audit.commits_unclassified))
    table.add_row("Files seen", str(audit.files_seen))
    table.add_row("", "")
    table.add_row("[bold]Rejected[/bold]", "")
    table.add_row("  Malformed file", str(audit.files_malformed))
    table.add_row("  Identical after normalization", str(audit.rejected_identical))
    table.add_row("  Change too small", str(audit.rejected_too_small))
    table.add_row("  No vulnerability indicator", str(audit.rejected_no_vulnerability_pattern))
    table.add_row("  Below confidence threshold", str(audit.rejected_low_confidence))
    table.add_row("  Duplicate content", str(audit.rejected_duplicate_content))
    table.add_row("  Duplicate commit", str(audit.rejected_duplicate_commit))
    table.add_row("", "")
    table.add_row("[bold]Accepted[/bold]", f"[bold green]{audit.accepted}[/bold green]")
    if audit.augmented:
        table.add_row("Augmented variants", str(audit.augmented))

    console.print(table)


def _print_distribution(statistics: dict) -> None:
    table = Table(title="Dataset", show_header=True, header_style="bold cyan")
    table.add_column("Category", style="dim")
    for name in SPLIT_NAMES:
        table.add_column(name, justify="right")
    table.add_column("total", justify="right")

    for label, counts in statistics.get("categories", {}).items():
        table.add_row(label, *(str(counts.get(name, 0)) for name in SPLIT_NAMES), str(counts.get("total", 0)))
    splits = statistics.get("splits", {})
    table.add_row(
        "[bold]All[/bold]",
        *(f"[bold]{splits.get(name, 0)}[/bold]" for name in SPLIT_NAMES),
        f"[bold]{statistics.get('total_samples', 0)}[/bold]",
    )
    console.print(table)

    scores = statistics.get("confidence_scores", {})
    if scores:
        console.print(
            "Confidence: " + ", ".join(f"{score} = {count}" for score, count in scores.items())
        )


@app.command()
def build(
    repos_dir: Annotated[
        Optional[Path],
        typer.Option("--repos-dir", "-r", help="Directory of git repositories to mine"),
    ] = None,
    commits_file: Annotated[
        Optional[Path],
        typer.Option("--commits-file", help="JSON or JSONL export of commit records (instead of git)"),
    ] = None,
    out_dir: Annotated[
        Optional[Path],
        typer.Option("--out-dir", "-o", help="Directory for split files and statistics"),
    ] = None,
    config_file: Annotated[
        Optional[Path],
        typer.Option("--config", "-c", help="Path to a vulnmine YAML config"),
    ] = None,
    seed: Annotated[Optional[int], typer.Option("--seed", help="Seed for splitting and augmentation")] = None,
    split: Annotated[Optional[str], typer.Option("--split", help="train,val,test ratios")] = None,
    threshold: Annotated[
        Optional[float],
        typer.Option("--threshold", help="Minimum confidence score"),
    ] = None,
    max_commits: Annotated[
        Optional[int],
        typer.Option("--max-commits", help="Only read the oldest N commits of each repository"),
    ] = None,
    keep_multi_file: Annotated[
        bool,
        typer.Option(
            "--keep-multi-file",
            help="Keep several files of the same commit (disables commit-level dedup)",
        ),
    ] = False,
    augment: Annotated[
        bool,
        typer.Option("--augment", help="Balance the training split with label-preserving variants"),
    ] = False,
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Log every rejection")] = False,
    quiet: Annotated[bool, typer.Option("--quiet", "-q", help="Suppress all output except errors")] = False,
) -> None:
    """
    Mine commits and write train/val/test split files.

    [bold]Examples:[/bold]

        vulnmine build --repos-dir data/repos --out-dir dataset

        vulnmine build --commits-file commits.jsonl --keep-multi-file
    """
    try:
        cfg = Config().load(config_file)
        _setup_logging(verbose or bool(cfg.get("verbose")), quiet)

        if repos_dir is not None:
            cfg.set("repos_dir", str(repos_dir))
        if out_dir is not None:
            cfg.set("output_dir", str(out_dir))
        if seed is not None:
            cfg.set("seed", seed)
        if split is not None:
            cfg.set("split", split)
        if threshold is not None:
            cfg.set("confidence_threshold", threshold)
        if max_commits is not None:
            cfg.set("max_commits", max_commits)
        if keep_multi_file:
            cfg.set("dedupe_by_commit", False)
        if augment:
            cfg.set("augment", True)

        options = PipelineOptions.from_config(cfg)

        if commits_file is not None:
            sources: list = [JsonCommitSource(commits_file)]
        else:
            repo_paths = iter_repositories(Path(cfg.get("repos_dir")))
            sources = [
                GitCommitSource(
                    path,
                    extensions=cfg.get("extensions") or (".java",),
                    max_commits=cfg.get("max_commits"),
                )
                for path in repo_paths
            ]
        if not sources:
            console.print("[yellow]No repositories found; nothing to build.[/yellow]")
            raise typer.Exit(EXIT_SUCCESS)

        if not quiet:
            with Progress(
                SpinnerColumn(),
                TextColumn("[progress.description]{task.description}"),
                console=console,
                transient=True,
            ) as progress:
                progress.add_task("Reading commit history...", total=None)
                records = materialize(sources)
        else:
            records = materialize(sources)

        malformed = sum(source.malformed for source in sources)
        result = MiningPipeline(options).run(records, malformed=malformed)
        statistics = build_statistics(result.splits, result.audit, options.dedupe_by_commit)
        output = Path(cfg.get("output_dir"))
        write_dataset(output, result.splits, statistics)

        if not quiet:
            _print_audit(result.audit)
            _print_distribution(statistics)
            console.print(f"\n[green]✓[/green] Dataset written to {output}")

    except ConfigError as exc:
        err_console.print(f"[red]Configuration error:[/red] {exc}")
        raise typer.Exit(EXIT_CONFIG_ERROR)
    except CommitSourceError as exc:
        err_console.print(f"[red]Cannot read commits:[/red] {exc}")
        raise typer.Exit(EXIT_ERROR)
    except VulnMineError as exc:
        err_console.print(f"[red]Error:[/red] {exc}")
        raise typer.Exit(EXIT_ERROR)
    except KeyboardInterrupt:
        err_console.print("\n[yellow]Build cancelled by user[/yellow]")
        raise typer.Exit(130)


@app.command()
def validate(
    dataset_dir: Annotated[Path, typer.Argument(help="Directory holding the split files")],
    max_errors: Annotated[int, typer.Option("--max-errors", help="Errors to print")] = 20,
) -> None:
    """Check split files and statistics against the dataset invariants."""
    _setup_logging(False, True)
    report = validate_dataset(dataset_dir)
    counts = ", ".join(f"{name}={report.counts.get(name, 0)}" for name in SPLIT_NAMES)
    if report.ok:
        console.print(f"[green]✓[/green] {dataset_dir} is valid ({counts})")
        raise typer.Exit(EXIT_SUCCESS)

    console.print(f"[red]✗[/red] {dataset_dir}: {len(report.errors)} problem(s) ({counts})")
    for message in report.errors[:max_errors]:
        console.print(f"  - {message}")
    if len(report.errors) > max_errors:
        console.print(f"  ... and {len(report.errors) - max_errors} more")
    raise typer.Exit(EXIT_INVALID)


@app.command()
def stats(
    dataset_dir: Annotated[Path, typer.Argument(help="Directory holding the split files")],
) -> None:
    """Show the statistics of a built dataset."""
    try:
        statistics = load_statistics(dataset_dir)
    except (FileNotFoundError, DatasetFormatError) as exc:
        err_console.print(f"[red]Error:[/red] {exc}")
        raise typer.Exit(EXIT_ERROR)

    _print_distribution(statistics)
    pipeline = statistics.get("pipeline")
    if pipeline:
        rates = pipeline.get("stage_rates", {})
        table = Table(title="Stage Acceptance", show_header=True, header_style="bold cyan")
        table.add_column("Stage", style="dim")
        table.add_column("Rate", justify="right")
        for stage, value in rates.items():
            table.add_row(stage, "-" if value is None else f"{value:.1%}")
        console.print(table)


def _parse_category(text: str) -> Category:
    folded = text.casefold()
    for category in Category:
        if folded in (category.name.casefold(), category.value.casefold()):
            return category
    labels = ", ".join(category.name for category in Category)
    raise typer.BadParameter(f"Unknown category {text!r} (expected one of {labels})")


@app.command()
def rules(
    category: Annotated[
        Optional[str],
        typer.Option("--category", help="Only this category (name or label, e.g. XSS)"),
    ] = None,
) -> None:
    """List the keyword phrases and indicator rules of each category."""
    if category is None:
        selected = all_rules()
    else:
        entry = get_rules(_parse_category(category))
        console.print(f"[bold]{entry.category.value}[/bold] keywords: " + ", ".join(entry.keywords))
        selected = [*entry.vulnerability_rules, *entry.fix_rules]

    table = Table(title="Indicator Rules", show_header=True, header_style="bold cyan")
    table.add_column("Rule", no_wrap=True)
    table.add_column("Kind", style="dim")
    table.add_column("CWE", no_wrap=True)
    table.add_column("Name")
    for rule in selected:
        table.add_row(rule.rule_id, rule.kind, rule.cwe, rule.name)
    console.print(table)


@app.command()
def classify(
    message: Annotated[str, typer.Argument(help="Commit message to classify")],
) -> None:
    """Show how a commit message is classified and whether it counts as strong."""
    category = classify_message(message)
    if category is None:
        console.print("Category: [yellow]none[/yellow] (commit would be dropped)")
    else:
        keywords = ", ".join(matching_keywords(message, category))
        console.print(f"Category: [green]{category.value}[/green] (keywords: {keywords})")
    console.print(f"Strong message: {'yes' if is_strong_message(message) else 'no'}")


@app.command()
def schema(
    output: Annotated[Path, typer.Argument(help="Where to write the JSON schema of a dataset record")],
) -> None:
    """Write the JSON schema of the split-file records."""
    export_schema_json(output)
    console.print(f"[green]✓[/green] Schema written to {output}")


@app.command()
def init(
    force: Annotated[
        bool,
        typer.Option("--force", "-f", help="Overwrite existing configuration"),
    ] = False,
) -> None:
    """
    Initialize vulnmine configuration in the current directory.

    Creates a .vulnmine.yaml configuration file with default settings.
    """
    config_path = Path.cwd() / ".vulnmine.yaml"

    if config_path.exists() and not force:
        console.print(
            f"[yellow]Configuration file already exists:[/yellow] {config_path}\n"
            "Use --force to overwrite."
        )
        raise typer.Exit(EXIT_CONFIG_ERROR)

    config_content = """\
# vulnmine configuration

# Directory holding one git checkout per repository
repos_dir: data/repos

# Where train.json, val.json, test.json and dataset_statistics.json go
output_dir: dataset

# File extensions to mine
extensions:
  - .java

# Oldest N commits per repository (null reads everything)
max_commits: null

# Samples scoring below this are dropped
confidence_threshold: 0.6

# Minimum length difference of the normalized before/after code
min_change_chars: 50

# Keep at most one sample per commit
dedupe_by_commit: true

# train,val,test ratios and the seed used for ordering
split: "0.7,0.15,0.15"
seed: 1337

# Balance these splits with label-preserving variants
augment: false
augment_splits:
  - train
"""

    config_path.write_text(config_content, encoding="utf-8")
    console.print(f"[green]✓[/green] Created configuration file: {config_path}")


@app.command(name="version")
def show_version() -> None:
    """Show version information."""
    console.print(
        Panel(
            f"[bold blue]{__app_name__}[/bold blue]\n\n"
            f"Version: [green]{__version__}[/green]\n"
            f"Python: {sys.version.split()[0]}\n\n"
            f"{__description__}",
            title="Version Info",
            border_style="blue",
        )
    )


@app.command()
def config(
    config_file: Annotated[
        Optional[Path],
        typer.Option("--config", "-c", help="Path to a vulnmine YAML config"),
    ] = None,
) -> None:
    """Show current configuration."""
    try:
        cfg = Config().load(config_file)
    except ConfigError as exc:
        err_console.print(f"[red]Configuration error:[/red] {exc}")
        raise typer.Exit(EXIT_CONFIG_ERROR)

    source = str(cfg.config_path) if cfg.config_path else "defaults"
    table = Table(title=f"Current Configuration ({source})", show_header=True, header_style="bold cyan")
    table.add_column("Setting", style="dim")
    table.add_column("Value")

    for key, value in cfg.to_dict().items():
        table.add_row(key, str(value))

    console.print(table)


@app.callback()
def main(
    version: Annotated[
        Optional[bool],
        typer.Option(
            "--version",
            "-V",
            callback=version_callback,
            is_eager=True,
            help="Show version and exit",
        ),
    ] = None,
) -> None:
    """
    vulnmine - labelled Java vulnerability samples from commit history.
    """


if __name__ == "__main__":
    app()
