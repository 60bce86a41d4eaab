"""Command-line interface for dumpmark."""

import sys
from pathlib import Path

import click
from rich.console import Console
from rich.table import Table
from rich.panel import Panel

from dumpmark import __version__

console = Console()


class AddressParam(click.ParamType):
    """Integer address in any Python literal base (0x..., 0o..., decimal)."""

    name = "address"

    def convert(self, value, param, ctx):
        if isinstance(value, int):
            return value
        try:
            address = int(value, 0)
        except ValueError:
            self.fail(f"{value!r} is not an address", param, ctx)
        if not 0 <= address < 1 << 64:
            self.fail(f"{value!r} is not a 64-bit address", param, ctx)
        return address


ADDRESS = AddressParam()


@click.group()
@click.version_option(version=__version__)
@click.option("-C", "--config", "config_path", type=click.Path(dir_okay=False), help="Path to dumpmark.yaml")
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging")
@click.option("--json-logs", is_flag=True, help="Emit logs as JSON")
@click.pass_context
def main(ctx: click.Context, config_path: str | None, verbose: bool, json_logs: bool) -> None:
    """dumpmark - replay script dumps as disassembly annotations."""
    from dumpmark.config import load_config
    from dumpmark.errors import ConfigError
    from dumpmark.utils.logging import setup_logging

    try:
        config = load_config(config_path)
    except ConfigError as e:
        raise click.ClickException(str(e)) from e

    level = "DEBUG" if verbose else config.logging.level
    setup_logging(level=level, json_output=json_logs or config.logging.json_output)
    ctx.obj = config


@main.command()
@click.argument("project", type=click.Path(dir_okay=False))
@click.option("--image", "image_path", type=click.Path(exists=True, dir_okay=False), help="Flat image bytes to load")
@click.option("--image-base", type=ADDRESS, default=None, help="Image base (default from config, else 0)")
@click.option("--load-address", type=ADDRESS, default=None, help="Where the image bytes start (default: image base)")
@click.option("--arch", type=click.Choice(["arm64", "arm", "thumb", "x86_64", "x86"]), default=None)
@click.option("--data", "data_only", is_flag=True, help="Load the image as non-executable data")
@click.option("--force", is_flag=True, help="Overwrite an existing project")
@click.pass_obj
def init(
    config,
    project: str,
    image_path: str | None,
    image_base: int | None,
    load_address: int | None,
    arch: str | None,
    data_only: bool,
    force: bool,
) -> None:
    """Create a project database, optionally loading a flat image."""
    from dumpmark.project import ProjectDatabase

    path = Path(project)
    if path.exists():
        if not force:
            raise click.ClickException(f"{path} exists, use --force to overwrite")
        path.unlink()

    if image_base is None:
        image_base = config.annotate.image_base or 0
    arch = arch or str(config.project.arch)

    with ProjectDatabase(path) as db:
        db.set_binary_info(image_path or "", arch, image_base)
        if image_path:
            data = Path(image_path).read_bytes()
            start = load_address if load_address is not None else image_base
            db.add_region(start, data, executable=not data_only)
            console.print(f"Loaded {len(data):#x} bytes at [green]{start:#018x}[/green]")

    console.print(f"Created [bold]{path}[/bold] ({arch}, image base {image_base:#x})")


@main.command()
@click.argument("project", type=click.Path(exists=True, dir_okay=False))
@click.argument("dump", type=click.Path(dir_okay=False))
@click.option("--decls", "decls_path", type=click.Path(dir_okay=False), help="C declarations to merge first")
@click.option("--image-base", type=ADDRESS, default=None, help="Override the project's image base")
@click.option("--prefix", "string_prefix", default=None, help="Name prefix for string literals")
@click.option("-d", "--diagnostics", "show_diagnostics", is_flag=True, help="Print every diagnostic line")
@click.pass_obj
def apply(
    config,
    project: str,
    dump: str,
    decls_path: str | None,
    image_base: int | None,
    string_prefix: str | None,
    show_diagnostics: bool,
) -> None:
    """Apply a script dump to a project."""
    from dumpmark import pipeline
    from dumpmark.host import ProjectHost
    from dumpmark.project import ProjectDatabase

    declarations = Path(decls_path) if decls_path else config.annotate.declarations
    if image_base is None:
        image_base = config.annotate.image_base

    with ProjectDatabase(project) as db:
        host = ProjectHost(db)
        with db.batch():
            result = pipeline.run(
                host,
                Path(dump),
                declarations=declarations,
                image_base=image_base,
                string_prefix=string_prefix or config.annotate.string_prefix,
            )

    if not result.ran or result.report is None:
        console.print(f"[red]{result.error}[/red]")
        sys.exit(1)

    report = result.report
    if result.declaration_errors:
        console.print(f"[yellow]{result.declaration_errors} declaration error(s)[/yellow]")

    table = Table(title=f"Applied at {result.image_base:#x}")
    table.add_column("Category", style="cyan")
    table.add_column("Seen", justify="right")
    table.add_column("Applied", justify="right", style="green")
    table.add_column("Skipped", justify="right", style="yellow")
    table.add_column("Soft failures", justify="right", style="red")

    for category, tally in report.tallies.items():
        if not tally.present:
            table.add_row(str(category), "[dim]absent[/dim]", "", "", "")
            continue
        table.add_row(
            str(category),
            str(tally.seen),
            str(tally.applied),
            str(tally.skipped),
            str(tally.failed_steps),
        )
    console.print(table)

    if show_diagnostics:
        for line in report.diagnostics:
            console.print(line, markup=False, highlight=False)

    if report.cancelled:
        console.print("[yellow]Cancelled[/yellow]")


@main.command()
@click.argument("project", type=click.Path(exists=True, dir_okay=False))
@click.argument("header", type=click.Path(exists=True, dir_okay=False))
def decls(project: str, header: str) -> None:
    """Merge a C declaration file into a project's type library."""
    from dumpmark.host import ProjectHost
    from dumpmark.project import ProjectDatabase
    from dumpmark.decls import preload_declarations

    with ProjectDatabase(project) as db:
        before = len(db.type_names())
        errors = preload_declarations(ProjectHost(db), Path(header))
        added = len(db.type_names()) - before

    if errors is None:
        raise click.ClickException(f"Cannot read {header}")
    style = "yellow" if errors else "green"
    console.print(f"[{style}]{added} type(s) added, {errors} error(s)[/{style}]")


@main.command()
@click.argument("project", type=click.Path(exists=True, dir_okay=False))
def info(project: str) -> None:
    """Display project information."""
    from dumpmark.project import ProjectDatabase

    with ProjectDatabase(project) as db:
        binary = db.get_binary_info()
        counts = db.counts()
        regions = db.get_regions()

    console.print(Panel.fit(f"[bold]{Path(project).name}[/bold]", title="Project Info"))

    table = Table(show_header=False)
    table.add_column("Property", style="cyan")
    table.add_column("Value")

    if binary:
        table.add_row("Image", binary["path"] or "N/A")
        table.add_row("Arch", binary["arch"])
        table.add_row("Image Base", f"{binary['image_base']:#x}")
    for key, value in counts.items():
        table.add_row(key.capitalize(), str(value))
    console.print(table)

    if regions:
        console.print("\n[bold]Regions:[/bold]")
        region_table = Table()
        region_table.add_column("Address", style="green")
        region_table.add_column("Size")
        region_table.add_column("Exec")
        for region in regions:
            region_table.add_row(
                f"{region.address:#x}", f"{region.size:#x}", "x" if region.executable else ""
            )
        console.print(region_table)


@main.command()
@click.argument("project", type=click.Path(exists=True, dir_okay=False))
@click.argument("target")
def show(project: str, target: str) -> None:
    """Show annotations at an address or name."""
    from dumpmark.project import ProjectDatabase

    with ProjectDatabase(project) as db:
        try:
            address: int | None = int(target, 0)
        except ValueError:
            address = db.address_of(target)
        if address is None:
            console.print(f"[red]Name not found: {target}[/red]")
            sys.exit(1)
        annotations = db.get_annotations(address)
        item = db.get_item(address)

    console.print(f"Address: [green]{address:#018x}[/green]\n")
    if item:
        console.print(f"  [magenta]{item.mnemonic} {item.operands}[/magenta]")
    if not annotations:
        console.print("[dim]No annotations at this address[/dim]")
        return

    table = Table()
    table.add_column("Kind", style="cyan")
    table.add_column("Value")
    for annotation in annotations:
        table.add_row(annotation.annotation_type.name.lower(), annotation.value)
    console.print(table)


if __name__ == "__main__":
    main()
