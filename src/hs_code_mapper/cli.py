# src/hs_code_mapper/cli.py
import json
import logging
import time

import click

from hs_code_mapper.config import (
    build_catalog,
    create_default_config,
    get_search_defaults,
    load_config,
)
from hs_code_mapper.correlation import CorrelationEngine
from hs_code_mapper.errors import HSCodeError
from hs_code_mapper.search import SEARCH_MODES
from hs_code_mapper.validator import CodeValidator


def _setup(ctx):
    """Load config and catalog once per invocation."""
    if "catalog" not in ctx.obj:
        cfg = load_config(ctx.obj["config_path"])
        level = "DEBUG" if ctx.obj["verbose"] else cfg.get("log_level", "WARNING")
        logging.getLogger().setLevel(level)

        start_time = time.time()
        catalog, table = build_catalog(cfg, show_progress=ctx.obj["progress"])
        ctx.obj.update(config=cfg, catalog=catalog, table=table)
        logging.getLogger(__name__).info(
            f"Catalog ready in {time.time() - start_time:.2f} seconds"
        )
    return ctx.obj


def _emit(payload, as_json):
    if as_json:
        click.echo(json.dumps(payload, indent=2, ensure_ascii=False))
        return True
    return False


@click.group()
@click.option("--config", "config_path", default="hs_code_mapper.yaml", show_default=True,
              help="YAML file listing versions and correlation tables")
@click.option("--verbose", is_flag=True, help="Enable debug logging")
@click.option("--progress/--no-progress", default=False, help="Show progress bar while loading")
@click.pass_context
def cli(ctx, config_path, verbose, progress):
    """HS code registry, validation, correlation and search"""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    ctx.ensure_object(dict)
    ctx.obj.update(config_path=config_path, verbose=verbose, progress=progress)


@cli.command()
@click.argument("codes", nargs=-1, required=True)
@click.option("--version", "version", default=None, help="Nomenclature version (default: current)")
@click.option("--jurisdiction", default=None, help="Jurisdiction for national extension digits")
@click.option("--check-existence/--no-check-existence", default=True)
@click.option("--json", "as_json", is_flag=True)
@click.pass_context
def validate(ctx, codes, version, jurisdiction, check_existence, as_json):
    """Validate one or more codes."""
    obj = _setup(ctx)
    validator = CodeValidator(obj["catalog"])
    try:
        results = [
            validator.validate(code, version=version, jurisdiction=jurisdiction,
                               check_existence=check_existence)
            for code in codes
        ]
    except HSCodeError as e:
        raise click.ClickException(str(e))

    if not _emit([dict(input=c, **r.to_dict()) for c, r in zip(codes, results)], as_json):
        for code, result in zip(codes, results):
            status = "valid" if result.valid else "invalid"
            details = ", ".join(
                [e.value for e in result.errors] + [f"warning: {w.value}" for w in result.warnings]
            )
            click.echo(f"{code}: {status}" + (f" ({details})" if details else ""))

    if not all(r.valid for r in results):
        ctx.exit(1)


@cli.command()
@click.argument("code")
@click.option("--version", "version", default=None)
@click.option("--jurisdiction", default=None)
@click.option("--json", "as_json", is_flag=True)
@click.pass_context
def lookup(ctx, code, version, jurisdiction, as_json):
    """Show a code's description and ancestors."""
    obj = _setup(ctx)
    try:
        chain = obj["catalog"].ancestors_of(code, version, jurisdiction)
    except HSCodeError as e:
        raise click.ClickException(str(e))

    if not _emit([entry.to_dict() for entry in chain], as_json):
        for depth, entry in enumerate(chain):
            click.echo(f"{'  ' * depth}{entry.code}  {entry.description}")


@cli.command()
@click.argument("code", required=False)
@click.option("--version", "version", default=None)
@click.option("--jurisdiction", default=None)
@click.option("--json", "as_json", is_flag=True)
@click.pass_context
def children(ctx, code, version, jurisdiction, as_json):
    """List direct children of a code (chapters when CODE is omitted)."""
    obj = _setup(ctx)
    try:
        entries = obj["catalog"].children(code, version, jurisdiction)
    except HSCodeError as e:
        raise click.ClickException(str(e))

    if not _emit([entry.to_dict() for entry in entries], as_json):
        for entry in entries:
            click.echo(f"{entry.code}  {entry.description}")


@cli.command()
@click.argument("code")
@click.option("--from", "from_version", required=True)
@click.option("--to", "to_version", required=True)
@click.option("--json", "as_json", is_flag=True)
@click.pass_context
def correlate(ctx, code, from_version, to_version, as_json):
    """Map a code from one nomenclature version to another."""
    obj = _setup(ctx)
    if obj["table"] is None:
        raise click.ClickException("No correlation tables configured")

    engine = CorrelationEngine(obj["table"], obj["catalog"])
    try:
        result = engine.correlate(code, from_version, to_version)
    except HSCodeError as e:
        raise click.ClickException(str(e))

    if not _emit(result.to_dict(), as_json):
        target = result.target_code.digits if result.target_code else "-"
        click.echo(f"{result.source_code} ({from_version}) -> {target} ({to_version}): {result.confidence.value}")
        if result.fallback_used:
            click.echo("  matched at heading level")
        for alternative in result.alternatives:
            click.echo(f"  alternative: {alternative}")
        for source in result.merged_sources:
            click.echo(f"  merged with: {source}")


@cli.command()
@click.argument("query")
@click.option("--version", "version", default=None)
@click.option("--chapter", "chapters", multiple=True, help="Restrict to chapter (repeatable)")
@click.option("--limit", type=int, default=None)
@click.option("--mode", type=click.Choice(SEARCH_MODES), default=None)
@click.option("--json", "as_json", is_flag=True)
@click.pass_context
def search(ctx, query, version, chapters, limit, mode, as_json):
    """Search descriptions for QUERY."""
    obj = _setup(ctx)
    defaults = get_search_defaults(obj["config"])
    try:
        hits = obj["catalog"].search(
            query,
            version=version,
            chapters=chapters or None,
            limit=limit or defaults["limit"],
            mode=mode or defaults["mode"],
        )
    except (HSCodeError, ValueError) as e:
        raise click.ClickException(str(e))

    if not _emit([hit.to_dict() for hit in hits], as_json):
        for hit in hits:
            click.echo(f"{hit.code}  {hit.score:.3f}  {hit.description}")
        if not hits:
            click.echo("No matches")


@cli.command()
@click.pass_context
def stats(ctx):
    """Show entry counts for every loaded registry."""
    obj = _setup(ctx)
    for name, counts in obj["catalog"].get_all_stats().items():
        click.echo(f"{name}: " + ", ".join(f"{k}={v:,}" for k, v in counts.items()))


@cli.command("init-config")
@click.argument("output_path", default="hs_code_mapper.yaml")
def init_config(output_path):
    """Write a default configuration file."""
    create_default_config(output_path)
    click.echo(f"Config template at {output_path}")


if __name__ == "__main__":
    cli()
