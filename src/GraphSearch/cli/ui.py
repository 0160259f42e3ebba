"""Click CLI interface definitions.

Defines the command-line interface structure and routes commands to the
command runner.
"""

from __future__ import annotations

from dataclasses import replace
from pathlib import Path

import click
from dotenv import load_dotenv

from GraphSearch.cli.commands import (
    CombineCommand,
    ExtractCommand,
    FindCommand,
    LoadCommand,
    ParseCommand,
    SearchCommand,
)
from GraphSearch.cli.runner import CommandRunner
from GraphSearch.config import DEFAULT_CONFIG_PATH, load_config, load_config_with_defaults
from GraphSearch.query.evaluator import OrderBy
from GraphSearch.services import CombineOrder, SetOperation, create_combine_options

_ORDER_CHOICES = click.Choice([item.value for item in OrderBy])


@click.group(help="GraphSearch: query a hierarchical note graph from the terminal.")
@click.option(
    "--config",
    "config_path",
    type=click.Path(path_type=Path, dir_okay=False),
    default=DEFAULT_CONFIG_PATH,
    show_default=True,
    help="Path to YAML config file (merged over the defaults).",
)
@click.pass_context
def cli(ctx: click.Context, config_path: Path) -> None:
    """CLI entry group.

    Loads environment variables from a .env file before reading the config,
    so the LLM API key can live there. The config is merged over
    config/default.yml when that file exists in the working directory.
    """
    load_dotenv()
    if DEFAULT_CONFIG_PATH.is_file():
        ctx.obj = load_config_with_defaults(config_path)
    else:
        ctx.obj = load_config(config_path)


@cli.command("load")
@click.argument("graph_file", type=click.Path(path_type=Path, exists=True, dir_okay=False))
@click.option("--append", is_flag=True, help="Keep existing graph content instead of replacing it.")
@click.pass_context
def load_cmd(ctx: click.Context, graph_file: Path, append: bool) -> None:
    """Import a YAML or JSON graph export into the database."""
    CommandRunner(ctx.obj).run(
        ctx.command.name,
        lambda service, db: LoadCommand(db_manager=db, graph_path=graph_file, replace=not append),
    )


@cli.command("search")
@click.argument("expression")
@click.option("--max-depth", type=click.IntRange(min=1), default=None, help="Depth for hierarchical operators.")
@click.option("--limit", type=click.IntRange(min=1), default=None, help="Maximum results returned.")
@click.option("--order-by", type=_ORDER_CHOICES, default=None, help="Result ordering.")
@click.option("--save-as", default=None, help="Store the result under this id.")
@click.pass_context
def search_cmd(
    ctx: click.Context,
    expression: str,
    max_depth: int | None,
    limit: int | None,
    order_by: str | None,
    save_as: str | None,
) -> None:
    """Search blocks with a query string, e.g. "[[Project]] + deadline" or "A => B"."""
    CommandRunner(ctx.obj).run(
        ctx.command.name,
        lambda service, db: SearchCommand(
            service=service,
            expression=expression,
            max_depth=max_depth,
            limit=limit,
            order_by=order_by,
            save_as=save_as,
        ),
    )


@cli.command("find")
@click.argument("request_file", type=click.Path(path_type=Path, exists=True, dir_okay=False))
@click.option("--pages", is_flag=True, help="Match page titles instead of blocks.")
@click.option("--limit", type=click.IntRange(min=1), default=None, help="Maximum results returned.")
@click.option("--order-by", type=_ORDER_CHOICES, default=None, help="Result ordering.")
@click.option("--save-as", default=None, help="Store the result under this id.")
@click.pass_context
def find_cmd(
    ctx: click.Context,
    request_file: Path,
    pages: bool,
    limit: int | None,
    order_by: str | None,
    save_as: str | None,
) -> None:
    """Run a structured condition request (conditions or groups) from a file."""
    CommandRunner(ctx.obj).run(
        ctx.command.name,
        lambda service, db: FindCommand(
            service=service,
            request_path=request_file,
            pages=pages,
            limit=limit,
            order_by=order_by,
            save_as=save_as,
        ),
    )


@cli.command("parse")
@click.argument("expression")
@click.pass_context
def parse_cmd(ctx: click.Context, expression: str) -> None:
    """Show how a query string is parsed, without searching."""
    CommandRunner(ctx.obj).run(
        ctx.command.name,
        lambda service, db: ParseCommand(service=service, expression=expression),
    )


@cli.command("combine")
@click.argument("result_ids", nargs=-1, required=True)
@click.option(
    "--operation",
    type=click.Choice([item.value for item in SetOperation]),
    default=SetOperation.UNION.value,
    show_default=True,
)
@click.option("--order-by", type=click.Choice([item.value for item in CombineOrder]), default=None)
@click.option("--min-appearances", type=click.IntRange(min=1), default=None)
@click.option("--max-appearances", type=click.IntRange(min=1), default=None)
@click.option("--source-info", is_flag=True, help="Show which results each identifier came from.")
@click.option("--save-as", default=None, help="Store the combined result under this id.")
@click.pass_context
def combine_cmd(
    ctx: click.Context,
    result_ids: tuple[str, ...],
    operation: str,
    order_by: str | None,
    min_appearances: int | None,
    max_appearances: int | None,
    source_info: bool,
    save_as: str | None,
) -> None:
    """Combine stored results with a set operation."""
    options = create_combine_options(ctx.obj)
    overrides = {}
    if order_by is not None:
        overrides["order_by"] = CombineOrder(order_by)
    if min_appearances is not None:
        overrides["min_appearances"] = min_appearances
    if max_appearances is not None:
        overrides["max_appearances"] = max_appearances
    if source_info:
        overrides["include_source_info"] = True
    try:
        options = replace(options, **overrides)
    except ValueError as e:
        raise click.BadParameter(str(e)) from e

    CommandRunner(ctx.obj).run(
        ctx.command.name,
        lambda service, db: CombineCommand(
            service=service,
            result_ids=result_ids,
            operation=operation,
            options=options,
            save_as=save_as,
        ),
    )


@cli.command("extract")
@click.argument("root_uids", nargs=-1)
@click.option("--from-result", "result_id", default=None, help="Use the records of a stored result as roots.")
@click.pass_context
def extract_cmd(ctx: click.Context, root_uids: tuple[str, ...], result_id: str | None) -> None:
    """Render the block hierarchy under each root."""
    if not root_uids and result_id is None:
        raise click.UsageError("Give at least one root uid or --from-result")
    CommandRunner(ctx.obj).run(
        ctx.command.name,
        lambda service, db: ExtractCommand(service=service, root_uids=root_uids, result_id=result_id),
    )
