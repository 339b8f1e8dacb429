"""Property graph commands."""

from typing import Annotated

import typer

from schemagraph.cli.context import CLIContext
from schemagraph.cli.output import OutputFormatter

# Create graph subcommand group
app = typer.Typer(help="Build and query the schema graph")


@app.command("build")
def graph_build(
    ctx: typer.Context,
    connection_id: Annotated[str, typer.Argument(help="Connection identifier")],
) -> None:
    """Rebuild the graph of a connection from the ledger.

    Examples:

        schemagraph graph build shop
    """
    cli_ctx: CLIContext = ctx.obj
    formatter = OutputFormatter(cli_ctx.json_output)

    try:
        result = cli_ctx.get_db().build_graph(connection_id)
        for skipped in result.skipped_relationships:
            formatter.print_warning(
                f"Orphaned relationship {skipped.relationship_id} skipped: {skipped.reason}"
            )
        formatter.print_success(
            f"Graph rebuilt for '{connection_id}'",
            result.model_dump(exclude={"connection_id", "skipped_relationships"}),
        )
    except Exception as e:
        formatter.print_error(e)
        raise typer.Exit(code=1)
    finally:
        cli_ctx.close()


@app.command("related")
def graph_related(
    ctx: typer.Context,
    connection_id: Annotated[str, typer.Argument(help="Connection identifier")],
    entity: Annotated[str, typer.Argument(help="Table name")],
) -> None:
    """List tables one foreign key away from a table."""
    cli_ctx: CLIContext = ctx.obj
    formatter = OutputFormatter(cli_ctx.json_output)

    try:
        related = cli_ctx.get_db().related_tables(connection_id, entity)
        if cli_ctx.json_output:
            formatter.print_data(related)
        else:
            formatter.print_table(
                f"Tables related to {entity}", [{"Table": t} for t in related], ["Table"]
            )
    except Exception as e:
        formatter.print_error(e)
        raise typer.Exit(code=1)
    finally:
        cli_ctx.close()


@app.command("path")
def graph_path(
    ctx: typer.Context,
    connection_id: Annotated[str, typer.Argument(help="Connection identifier")],
    source: Annotated[str, typer.Argument(help="Start table")],
    target: Annotated[str, typer.Argument(help="End table")],
) -> None:
    """Show the shortest join path between two tables.

    Examples:

        schemagraph graph path shop order_items customers
    """
    cli_ctx: CLIContext = ctx.obj
    formatter = OutputFormatter(cli_ctx.json_output)

    try:
        path = cli_ctx.get_db().find_join_path(connection_id, source, target)
        if cli_ctx.json_output:
            formatter.print_data({"source": source, "target": target, "path": path})
        elif path is None:
            formatter.print_warning(f"No join path between {source} and {target}")
        else:
            formatter.print_success(" -> ".join(path), {"hops": len(path) - 1})
    except Exception as e:
        formatter.print_error(e)
        raise typer.Exit(code=1)
    finally:
        cli_ctx.close()


@app.command("describe")
def graph_describe(
    ctx: typer.Context,
    connection_id: Annotated[str, typer.Argument(help="Connection identifier")],
    entity: Annotated[str, typer.Argument(help="Table name")],
) -> None:
    """Show a table's columns with key flags as stored in the graph."""
    cli_ctx: CLIContext = ctx.obj
    formatter = OutputFormatter(cli_ctx.json_output)

    try:
        formatter.print_table_context(cli_ctx.get_db().describe_entity(connection_id, entity))
    except Exception as e:
        formatter.print_error(e)
        raise typer.Exit(code=1)
    finally:
        cli_ctx.close()
