"""Question answering and structural analysis commands."""

from typing import Annotated

import typer

from schemagraph.cli.context import CLIContext
from schemagraph.cli.output import OutputFormatter
from schemagraph.cli.parsing import read_history_file


# Ask command (registered as standalone in main.py)
def ask_command(
    ctx: typer.Context,
    connection_id: Annotated[str, typer.Argument(help="Connection identifier")],
    question: Annotated[str, typer.Argument(help="Question about the schema")],
    history: Annotated[
        str | None,
        typer.Option("--history", help="Earlier turns as JSON or JSON Lines of {role, content}"),
    ] = None,
) -> None:
    """Answer a question from documentation and graph relationships.

    Examples:
        schemagraph ask shop "How do orders relate to customers?"
        schemagraph ask shop "Which column joins them?" --history turns.jsonl --json
    """
    cli_ctx: CLIContext = ctx.obj
    formatter = OutputFormatter(cli_ctx.json_output)

    try:
        turns = read_history_file(history) if history else None
        answer = cli_ctx.get_db().ask(question, connection_id, turns)
        formatter.print_answer(answer)
    except Exception as e:
        formatter.print_error(e)
        raise typer.Exit(code=1)
    finally:
        cli_ctx.close()


# Analyze command (registered as standalone in main.py)
def analyze_command(
    ctx: typer.Context,
    connection_id: Annotated[str, typer.Argument(help="Connection identifier")],
    entities: Annotated[
        str | None,
        typer.Option("--entities", help="Comma-separated tables for an impact analysis"),
    ] = None,
) -> None:
    """Report isolated tables, max relationship depth and hubs.

    Examples:
        schemagraph analyze shop
        schemagraph analyze shop --entities orders,customers,products
    """
    cli_ctx: CLIContext = ctx.obj
    formatter = OutputFormatter(cli_ctx.json_output)

    try:
        db = cli_ctx.get_db()
        if entities:
            names = [n.strip() for n in entities.split(",") if n.strip()]
            formatter.print_data(db.impact_analysis(connection_id, names))
        else:
            formatter.print_report(db.structural_report(connection_id))
    except Exception as e:
        formatter.print_error(e)
        raise typer.Exit(code=1)
    finally:
        cli_ctx.close()
