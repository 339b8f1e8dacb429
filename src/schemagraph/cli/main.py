"""SchemaGraph CLI - Main entry point."""

import logging
from typing import Annotated

import typer

import schemagraph
from schemagraph.cli.context import CLIContext, get_database_url
from schemagraph.cli.output import OutputFormatter

# Create main Typer app
app = typer.Typer(
    name="schemagraph",
    help="SchemaGraph CLI - metadata graph sync and hybrid retrieval for relational schemas",
    no_args_is_help=True,
)

# Store CLI context globally (will be set in callback)
state: dict[str, CLIContext] = {}


@app.callback()
def main_callback(
    ctx: typer.Context,
    database: Annotated[
        str | None,
        typer.Option(
            "--database",
            "-d",
            envvar="SCHEMAGRAPH_URL",
            help="Ledger database URL (PostgreSQL or SQLite)",
        ),
    ] = None,
    echo: Annotated[
        bool,
        typer.Option(
            "--echo",
            "-e",
            help="Echo SQL statements to console",
        ),
    ] = False,
    json_output: Annotated[
        bool,
        typer.Option(
            "--json",
            "-j",
            help="Output as JSON (machine-readable)",
        ),
    ] = False,
    verbose: Annotated[
        bool,
        typer.Option(
            "--verbose",
            "-v",
            help="Log progress to stderr",
        ),
    ] = False,
) -> None:
    """Initialize CLI context with global options."""
    if verbose:
        logging.basicConfig(
            level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s"
        )

    cli_ctx = CLIContext.from_env(
        database_url=get_database_url(database),
        echo=echo,
        json_output=json_output,
    )

    # Store in Typer context for command access
    ctx.obj = cli_ctx
    state["cli_ctx"] = cli_ctx


@app.command()
def version() -> None:
    """Show version information."""
    typer.echo(f"SchemaGraph v{schemagraph.__version__}")


@app.command()
def init(ctx: typer.Context) -> None:
    """Create the ledger tables (sg_*) in the database.

    Examples:

        schemagraph init
        schemagraph --database postgresql://localhost/meta init
    """
    cli_ctx: CLIContext = ctx.obj
    formatter = OutputFormatter(cli_ctx.json_output)

    try:
        # Ledger tables are created when the engine starts
        cli_ctx.get_db()
        formatter.print_success(
            "Ledger initialized",
            {
                "database": cli_ctx.database_url,
                "version": schemagraph.__version__,
            },
        )
    except Exception as e:
        formatter.print_error(e)
        raise typer.Exit(code=1)
    finally:
        cli_ctx.close()


# Register command groups
from schemagraph.cli.commands import ask, docs, embeddings, graph, metadata  # noqa: E402

app.add_typer(metadata.app, name="metadata")
app.add_typer(docs.app, name="docs")
app.add_typer(graph.app, name="graph")
app.add_typer(embeddings.app, name="embeddings")

# Register retrieval and analytics as standalone commands (not groups)
app.command(name="ask")(ask.ask_command)
app.command(name="analyze")(ask.analyze_command)


def main() -> None:
    """Main entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
