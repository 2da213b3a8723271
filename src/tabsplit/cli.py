"""CLI for TabSplit."""

import typer

from .ledger.cli import app as group_app
from .mcp_server import run_server

app = typer.Typer(
    name="tabsplit",
    help="Track shared group expenses and settle who owes whom",
)

app.add_typer(group_app, name="group", help="Groups, expenses and settling up")


@app.command()
def mcp():
    """Start the MCP server for assistant integration."""
    run_server()


if __name__ == "__main__":
    app()
