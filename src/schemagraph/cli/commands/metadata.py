"""Ledger metadata commands."""

from typing import Annotated

import typer

from schemagraph.cli.context import CLIContext
from schemagraph.cli.output import OutputFormatter
from schemagraph.cli.parsing import parse_tables, read_json_file

# Create metadata subcommand group
app = typer.Typer(help="Sync table metadata into the ledger")


@app.command("sync")
def metadata_sync(
    ctx: typer.Context,
    connection_id: Annotated[str, typer.Argument(help="Connection identifier")],
    file: Annotated[str, typer.Argument(help="JSON file with introspected tables")],
    name: Annotated[str | None, typer.Option("--name", help="Connection display name")] = None,
    provider: Annotated[
        str, typer.Option("--provider", help="Database vendor of the connection")
    ] = "postgresql",
) -> None:
    """Write introspected tables, columns and foreign keys into the ledger.

    Examples:

        schemagraph metadata sync shop tables.json
        schemagraph metadata sync shop information_schema_rows.json --name "Shop DB"
    """
    cli_ctx: CLIContext = ctx.obj
    formatter = OutputFormatter(cli_ctx.json_output)

    try:
        tables = parse_tables(read_json_file(file))
        db = cli_ctx.get_db()
        db.register_connection(connection_id, name=name, provider=provider)
        result = db.sync_metadata(connection_id, tables)

        for skipped in result.skipped_foreign_keys:
            formatter.print_warning(f"Unresolved foreign key skipped: {skipped}")
        formatter.print_success(
            f"Synced metadata for '{connection_id}'",
            result.model_dump(exclude={"connection_id"}),
        )
    except Exception as e:
        formatter.print_error(e)
        raise typer.Exit(code=1)
    finally:
        cli_ctx.close()


@app.command("list")
def metadata_list(
    ctx: typer.Context,
    connection_id: Annotated[str, typer.Argument(help="Connection identifier")],
) -> None:
    """List the entities recorded for a connection."""
    cli_ctx: CLIContext = ctx.obj
    formatter = OutputFormatter(cli_ctx.json_output)

    try:
        entities = cli_ctx.get_db().list_entities(connection_id)
        if cli_ctx.json_output:
            formatter.print_data(entities)
        else:
            formatter.print_table(
                f"Entities of {connection_id} ({len(entities)} total)",
                [{"Name": e} for e in entities],
                ["Name"],
            )
    except Exception as e:
        formatter.print_error(e)
        raise typer.Exit(code=1)
    finally:
        cli_ctx.close()


@app.command("connections")
def metadata_connections(ctx: typer.Context) -> None:
    """List registered connections."""
    cli_ctx: CLIContext = ctx.obj
    formatter = OutputFormatter(cli_ctx.json_output)

    try:
        connections = cli_ctx.get_db().list_connections()
        formatter.print_table(
            f"Connections ({len(connections)} total)",
            connections,
            ["id", "name", "provider", "created_at"],
        )
    except Exception as e:
        formatter.print_error(e)
        raise typer.Exit(code=1)
    finally:
        cli_ctx.close()
