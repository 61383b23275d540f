import argparse
import sys
from rich.markdown import Markdown
from rich.panel import Panel
from rich.table import Table
from rich import box

from sqlchat.core.database import get_app_db
from sqlchat.core.logging import console, setup_logging
from sqlchat.services.chat import ChatBotService


def render_rows(rows, limit: int = 20) -> Table:
    table = Table(box=box.ROUNDED, expand=False)
    columns = list(rows[0].keys()) if rows else []
    for col in columns:
        table.add_column(col, style="cyan")
    for row in rows[:limit]:
        table.add_row(*["" if row.get(c) is None else str(row.get(c)) for c in columns])
    return table


def main(argv=None):
    parser = argparse.ArgumentParser(description="Ask questions about a registered database.")
    parser.add_argument("--user", type=int, required=True, help="user id")
    parser.add_argument("--database", type=int, required=True, help="database config id")
    parser.add_argument("--show-sql", action="store_true")
    args = parser.parse_args(argv)

    setup_logging()
    with console.status("[bold green]Connecting to app database...[/bold green]"):
        get_app_db()
    service = ChatBotService()

    console.print(Panel("[bold yellow]SQL Chat[/bold yellow]\nType a question, or 'exit' to quit.", expand=False))

    while True:
        try:
            question = console.input("\n[bold cyan]you > [/bold cyan]").strip()
        except (EOFError, KeyboardInterrupt):
            break
        if not question:
            continue
        if question.lower() in ("exit", "quit"):
            break

        with console.status("[bold green]Thinking...[/bold green]"):
            response = service.ask(question, args.database, args.user)

        if args.show_sql and response.sql_query:
            console.print(Panel(response.sql_query, title="SQL", border_style="dim"))
        if response.result_rows:
            console.print(render_rows(response.result_rows))
        style = "green" if response.success else "red"
        console.print(Panel(Markdown(response.answer), title="assistant", border_style=style))

    console.print("[bold yellow]Bye![/bold yellow]")
    return 0


if __name__ == "__main__":
    sys.exit(main())
