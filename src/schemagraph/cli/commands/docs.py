"""Documentation chunk commands."""

from typing import Annotated

import typer

from schemagraph.cli.context import CLIContext
from schemagraph.cli.output import OutputFormatter
from schemagraph.cli.parsing import read_markdown_dir

# Create docs subcommand group
app = typer.Typer(help="Manage per-table documentation")


@app.command("load")
def docs_load(
    ctx: typer.Context,
    connection_id: Annotated[str, typer.Argument(help="Connection identifier")],
    directory: Annotated[str, typer.Argument(help="Directory of <table>.md files")],
) -> None:
    """Load generated markdown documentation, one file per table.

    Examples:

        schemagraph docs load shop ./docs/shop
    """
    cli_ctx: CLIContext = ctx.obj
    formatter = OutputFormatter(cli_ctx.json_output)

    try:
        docs = read_markdown_dir(directory)
        if not docs:
            formatter.print_warning(f"No .md files found in {directory}")
        chunks = cli_ctx.get_db().load_documentation(connection_id, docs)
        formatter.print_success(
            f"Loaded {len(chunks)} documentation chunks",
            {"entities": [c.entity_name for c in chunks]},
        )
    except Exception as e:
        formatter.print_error(e)
        raise typer.Exit(code=1)
    finally:
        cli_ctx.close()


@app.command("seed")
def docs_seed(
    ctx: typer.Context,
    connection_id: Annotated[str, typer.Argument(help="Connection identifier")],
    overwrite: Annotated[
        bool, typer.Option("--overwrite", help="Replace existing documentation too")
    ] = False,
) -> None:
    """Write column-summary documentation for tables that have none.

    Examples:

        schemagraph docs seed shop
    """
    cli_ctx: CLIContext = ctx.obj
    formatter = OutputFormatter(cli_ctx.json_output)

    try:
        written = cli_ctx.get_db().seed_documentation(connection_id, overwrite=overwrite)
        formatter.print_success(f"Seeded documentation for {len(written)} tables", {"entities": written})
    except Exception as e:
        formatter.print_error(e)
        raise typer.Exit(code=1)
    finally:
        cli_ctx.close()


@app.command("list")
def docs_list(
    ctx: typer.Context,
    connection_id: Annotated[str, typer.Argument(help="Connection identifier")],
) -> None:
    """List documentation chunks and whether they are embedded."""
    cli_ctx: CLIContext = ctx.obj
    formatter = OutputFormatter(cli_ctx.json_output)

    try:
        chunks = cli_ctx.get_db().ledger.list_doc_chunks(connection_id)
        rows = [
            {
                "entity": c.entity_name,
                "chars": len(c.markdown_content),
                "embedding_id": c.embedding_id or "",
            }
            for c in chunks
        ]
        formatter.print_table(
            f"Documentation of {connection_id}", rows, ["entity", "chars", "embedding_id"]
        )
    except Exception as e:
        formatter.print_error(e)
        raise typer.Exit(code=1)
    finally:
        cli_ctx.close()
