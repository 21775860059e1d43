from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table

from .build import build_site
from .errors import ConfigurationError, SrcsetError
from .options import UserOptions, find_config, load_config, resolve_options
from .pipeline import SrcsetPipeline

app = typer.Typer(add_completion=False, no_args_is_help=True)
console = Console()


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
        force=True,
    )


def _load_user_options(config: Optional[Path], start_dir: Path) -> Optional[UserOptions]:
    if config is None:
        config = find_config(start_dir)
    if config is None:
        return None
    console.print(f"Using config [cyan]{config}[/cyan]")
    return load_config(config)


def _parse_widths(value: Optional[str]) -> Optional[list[int]]:
    if not value:
        return None
    try:
        return [int(x.strip()) for x in value.split(",") if x.strip()]
    except ValueError as e:
        raise typer.BadParameter("Widths must be comma-separated integers, e.g. 320,640,1280") from e


@app.command()
def build(
    root: Path = typer.Argument(..., exists=True, file_okay=False),
    public_dir: str = typer.Option("public", "--public-dir", help="Directory holding source images"),
    out_dir: str = typer.Option("dist", "--out-dir", help="Build output directory under ROOT"),
    assets_dir: str = typer.Option("assets", "--assets-dir", help="Variant directory under the output"),
    config: Optional[Path] = typer.Option(None, "--config", exists=True, dir_okay=False),
    threads: int = typer.Option(4, "--threads", min=1, help="Documents processed in parallel"),
    dry_run: bool = typer.Option(False, "--dry-run", help="Show what would be rewritten"),
    verbose: bool = typer.Option(False, "--verbose", "-v"),
):
    """Rewrite ?srcset image references in every HTML document under ROOT."""
    _setup_logging(verbose)
    try:
        user = _load_user_options(config, root)
        result = build_site(
            root,
            public_dir=public_dir,
            out_dir=out_dir,
            assets_dir=assets_dir,
            options=user,
            threads=threads,
            dry_run=dry_run,
        )
    except ConfigurationError as e:
        console.print(f"[bold red]Configuration error:[/bold red] {escape(str(e))}")
        raise typer.Exit(code=2) from e

    table = Table(title="Dry run" if dry_run else "html-srcset build")
    table.add_column("Document")
    table.add_column("Included")
    table.add_column("Rewritten" if not dry_run else "Has markers")
    table.add_column("Failed")
    for doc in result.documents:
        table.add_row(
            doc.path,
            "yes" if doc.included else "no",
            ("yes" if doc.changed else "no") if dry_run else str(doc.rewritten),
            str(len(doc.failures)),
        )
    console.print(table)

    if result.warnings:
        console.print("\n[bold yellow]Warnings:[/bold yellow]")
        for w in result.warnings:
            console.print(f"  - {escape(w)}")

    if result.errors:
        console.print("\n[bold red]Errors:[/bold red]")
        for e in result.errors:
            console.print(f"  - {escape(e)}")
        raise typer.Exit(code=1)

    console.print(f"\n[bold green]Done[/bold green] in {result.duration_sec:.2f}s → {result.output_dir}")


@app.command()
def plan(
    image: Path = typer.Argument(..., exists=True, dir_okay=False),
    widths: Optional[str] = typer.Option(None, "--widths", help="Override output widths, e.g. 320,640"),
    config: Optional[Path] = typer.Option(None, "--config", exists=True, dir_okay=False),
    assets_dir: str = typer.Option("assets", "--assets-dir"),
):
    """Show the variants that would be generated for IMAGE."""
    try:
        user = _load_user_options(config, Path.cwd()) or UserOptions()
        overrides = user.model_dump(exclude_none=True)
        parsed = _parse_widths(widths)
        if parsed is not None:
            overrides["output_widths"] = parsed
        options = resolve_options(overrides).with_roots(image.parent.resolve(), ".", assets_dir=assets_dir)
        variants = SrcsetPipeline(options).plan(image.name)
    except ConfigurationError as e:
        console.print(f"[bold red]Configuration error:[/bold red] {escape(str(e))}")
        raise typer.Exit(code=2) from e
    except SrcsetError as e:
        console.print(f"[bold red]Error:[/bold red] {escape(str(e))}")
        raise typer.Exit(code=3) from e

    table = Table(title=str(image))
    table.add_column("Format")
    table.add_column("Width", justify="right")
    table.add_column("Height", justify="right")
    table.add_column("URL")
    for v in variants:
        table.add_row(v.format.value, str(v.width), str(v.height), v.url)
    console.print(table)


def main() -> None:
    app()


if __name__ == "__main__":
    main()
