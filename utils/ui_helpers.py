import os
import json
from datetime import datetime
from typing import List, Any, Dict, Optional, Sequence, Tuple
from rich.console import Console
from rich.table import Table
from rich.panel import Panel

# Environment variable to control CLI output mode
# Allowed values: 'plain' (default), 'json', 'rich'
OUTPUT_MODE_ENV = "LIB_CLI_OUTPUT"

_console = Console()

def set_output_mode(mode: str) -> None:
    mode = (mode or "").lower().strip()
    if mode in {"plain", "json", "rich"}:
        os.environ[OUTPUT_MODE_ENV] = mode

def get_output_mode() -> str:
    return os.environ.get(OUTPUT_MODE_ENV, "plain").lower()

def format_date(value: Optional[datetime]) -> str:
    return value.date().isoformat() if value else ""

def _print_rows(rows: List[Dict[str, Any]], columns: Sequence[Tuple[str, str]], title: str,
                empty_message: str, plain_format: str) -> None:
    """Shared renderer: columns are (key, heading) pairs, plain_format a str.format template over a row."""
    mode = get_output_mode()

    if not rows:
        print(empty_message)
        return

    if mode == "json":
        print(json.dumps(rows, ensure_ascii=False, default=str))
    elif mode == "rich":
        table = Table(title=title, show_lines=True, header_style="bold cyan")
        for i, (_, heading) in enumerate(columns):
            table.add_column(heading, style="magenta" if i == 0 else "white", no_wrap=(i == 0))
        for row in rows:
            table.add_row(*[str(row.get(key, "")) for key, _ in columns])
        _console.print(table)
    else:
        for row in rows:
            print(plain_format.format(**row))

def print_books(books: List[Any], availability: Dict[str, int]) -> None:
    """Books with their live availability.
    - plain: 'ID - Title by Author (available/copies)'
    - json: array of book dicts plus 'available'
    - rich: table
    """
    rows = [{**b.to_dict(), "available": availability.get(b.id, 0)} for b in books]
    _print_rows(
        rows,
        [("id", "ID"), ("title", "Title"), ("author", "Author"), ("copies", "Copies"), ("available", "Available")],
        "📚 Books",
        "No books in library.",
        "{id} - {title} by {author} ({available}/{copies} available)",
    )

def print_members(members: List[Any]) -> None:
    _print_rows(
        [m.to_dict() for m in members],
        [("id", "ID"), ("name", "Name"), ("email", "Email"), ("phone", "Phone")],
        "👥 Members",
        "No members registered.",
        "{id} - {name} <{email}> {phone}",
    )

def print_active_issues(rows: List[Dict[str, Any]]) -> None:
    display = [{**r, "issued_at": format_date(r["issued_at"]), "due_at": format_date(r["due_at"])} for r in rows]
    _print_rows(
        display,
        [("id", "Txn ID"), ("title", "Book"), ("name", "Member"), ("due_at", "Due")],
        "📖 Active Issues",
        "No books currently issued.",
        "{id} - {title} -> {name} (due {due_at})",
    )

def print_stats_result(stats: Dict[str, Any]) -> None:
    """Dashboard counts in the current output mode."""
    mode = get_output_mode()

    if not stats:
        print("No statistics available.")
        return

    books = stats.get("total_books", 0)
    members = stats.get("total_members", 0)
    issued = stats.get("total_active_issues", 0)

    if mode == "json":
        print(json.dumps({"total_books": books, "total_members": members, "total_active_issues": issued}))
    elif mode == "rich":
        content = f"[bold]Books:[/] {books}\n[bold]Members:[/] {members}\n[bold]Currently Issued:[/] {issued}"
        _console.print(Panel.fit(content, title="📊 Dashboard", border_style="blue"))
    else:
        print(f"Total Books: {books}")
        print(f"Total Members: {members}")
        print(f"Currently Issued: {issued}")
