"""Embedding pipeline commands."""

from typing import Annotated

import typer

from schemagraph.cli.context import CLIContext
from schemagraph.cli.output import OutputFormatter

# Create embeddings subcommand group
app = typer.Typer(help="Embed documentation into the vector collection")


@app.command("sync")
def embeddings_sync(
    ctx: typer.Context,
    connection_id: Annotated[str, typer.Argument(help="Connection identifier")],
    entity: Annotated[
        list[str] | None,
        typer.Option("--entity", "-e", help="Only embed this table. Can be repeated."),
    ] = None,
) -> None:
    """Embed documentation chunks of a connection.

    Exits with code 2 if some tables failed and the rest were embedded.

    Examples:

        schemagraph embeddings sync shop
        schemagraph embeddings sync shop -e orders -e customers
    """
    cli_ctx: CLIContext = ctx.obj
    formatter = OutputFormatter(cli_ctx.json_output)

    try:
        result = cli_ctx.get_db().embed_documentation(connection_id, entity)
    except Exception as e:
        formatter.print_error(e)
        cli_ctx.close()
        raise typer.Exit(code=1)

    try:
        for failure in result.failed:
            formatter.print_warning(f"{failure.entity_name}: {failure.error}")
        formatter.print_success(
            f"Embedded {len(result.succeeded)} tables into '{result.collection}'",
            {
                "succeeded": result.succeeded,
                "failed": [f.model_dump() for f in result.failed],
            },
        )
    finally:
        cli_ctx.close()
    if not result.complete:
        raise typer.Exit(code=2)


@app.command("status")
def embeddings_status(
    ctx: typer.Context,
    connection_id: Annotated[str, typer.Argument(help="Connection identifier")],
) -> None:
    """Show how many documentation chunks are embedded."""
    cli_ctx: CLIContext = ctx.obj
    formatter = OutputFormatter(cli_ctx.json_output)

    try:
        status = cli_ctx.get_db().embedding_status(connection_id)
        data = {**status.model_dump(), "embedded": status.embedded}
        if cli_ctx.json_output:
            formatter.print_data(data)
        elif status.embedded:
            formatter.print_success(f"All {status.total} chunks embedded")
        else:
            formatter.print_warning(
                f"{status.embedded_count} of {status.total} chunks embedded. "
                "Run 'embeddings sync' to embed the rest."
            )
    except Exception as e:
        formatter.print_error(e)
        raise typer.Exit(code=1)
    finally:
        cli_ctx.close()


@app.command("provision")
def embeddings_provision(ctx: typer.Context) -> None:
    """Create the vector collection and its connection_id index."""
    cli_ctx: CLIContext = ctx.obj
    formatter = OutputFormatter(cli_ctx.json_output)

    try:
        created = cli_ctx.get_db().provision_collection()
        message = "Collection created" if created else "Collection already exists"
        formatter.print_success(message, {"collection": cli_ctx.collection})
    except Exception as e:
        formatter.print_error(e)
        raise typer.Exit(code=1)
    finally:
        cli_ctx.close()


@app.command("flush")
def embeddings_flush(
    ctx: typer.Context,
    yes: Annotated[bool, typer.Option("--yes", "-y", help="Skip confirmation")] = False,
) -> None:
    """Delete the whole vector collection and reset embedding ids."""
    cli_ctx: CLIContext = ctx.obj
    formatter = OutputFormatter(cli_ctx.json_output)

    if not yes and not cli_ctx.json_output:
        typer.confirm(
            f"Delete collection '{cli_ctx.collection}' for every connection?", abort=True
        )

    try:
        cleared = cli_ctx.get_db().flush_collection()
        formatter.print_success(
            "Collection flushed", {"collection": cli_ctx.collection, "cleared": cleared}
        )
    except Exception as e:
        formatter.print_error(e)
        raise typer.Exit(code=1)
    finally:
        cli_ctx.close()
