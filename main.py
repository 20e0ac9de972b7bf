import logging
import subprocess
import sys
import webbrowser
from typing import Optional

import typer
from rich.console import Console
from rich.prompt import Confirm

from config import settings
from exceptions import ValidationError
from export import export_csv
from library import Library
from utils.ui_helpers import (
    format_date,
    print_active_issues,
    print_books,
    print_members,
    print_stats_result,
    set_output_mode,
)

APP_NAME = "Library CLI"

console = Console()
logger = logging.getLogger(__name__)


class LibraryManager:
    """Lazily created Library shared by all commands of one process."""

    _instance: Optional[Library] = None

    @classmethod
    def get_instance(cls) -> Library:
        if cls._instance is None:
            cls._instance = Library(settings.data_file)
            logger.debug(f"Library opened from {settings.data_file}")
        return cls._instance

    @classmethod
    def set_instance(cls, library: Optional[Library]) -> None:
        cls._instance = library


def _fail(message: str) -> None:
    print(f"Error: {message}")
    raise typer.Exit(code=1)


# --- Typer CLI application ---
app = typer.Typer(help="Library ledger CLI")


@app.callback()
def _global_options(
    output: Optional[str] = typer.Option(
        None,
        "--output",
        "-o",
        help="Output format: plain | json | rich (default: plain)",
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show log messages"),
):
    """Global options shared by every command."""
    logging.basicConfig(
        level=logging.INFO if verbose else logging.WARNING,
        format="%(levelname)s: %(message)s",
    )
    if output:
        set_output_mode(output)


# ------------------------- Books ------------------------- #
@app.command("list-books")
def cli_list_books(search: Optional[str] = typer.Option(None, "--search", "-s", help="Filter by title, author, ISBN, category or id")):
    """List books with their available copies."""
    lib = LibraryManager.get_instance()
    books = lib.list_books(search)
    print_books(books, {b.id: lib.available_copies(b.id) for b in books})


@app.command("add-book")
def cli_add_book(
    title: str,
    author: str = typer.Option("", "--author", "-a"),
    isbn: str = typer.Option("", "--isbn"),
    copies: int = typer.Option(1, "--copies", "-c"),
    category: str = typer.Option("", "--category"),
):
    """Add a book to the catalog."""
    lib = LibraryManager.get_instance()
    try:
        book = lib.add_book(title=title, author=author, isbn=isbn, copies=copies, category=category)
    except ValidationError as e:
        _fail(str(e))
    print(f"Book added: {book.id} - {book.title}")


@app.command("update-book")
def cli_update_book(
    book_id: str,
    title: Optional[str] = typer.Option(None, "--title", "-t"),
    author: Optional[str] = typer.Option(None, "--author", "-a"),
    isbn: Optional[str] = typer.Option(None, "--isbn"),
    copies: Optional[int] = typer.Option(None, "--copies", "-c"),
    category: Optional[str] = typer.Option(None, "--category"),
):
    """Change one or more fields of a book."""
    changes = {k: v for k, v in {
        "title": title, "author": author, "isbn": isbn, "copies": copies, "category": category,
    }.items() if v is not None}
    if not changes:
        _fail("Nothing to update. Provide at least one field.")
    lib = LibraryManager.get_instance()
    try:
        book = lib.update_book(book_id, changes)
    except ValidationError as e:
        _fail(str(e))
    if book is None:
        print(f"Book {book_id} not found.")
        return
    print(f"Book updated: {book.id} - {book.title}")


@app.command("remove-book")
def cli_remove_book(book_id: str, yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation")):
    """Delete a book and every transaction that references it."""
    lib = LibraryManager.get_instance()
    if lib.find_book(book_id) is None:
        print(f"Book {book_id} not found.")
        return
    if not yes and not Confirm.ask("Delete this book?", console=console):
        print("Cancelled.")
        return
    lib.delete_book(book_id)
    print(f"Book {book_id} deleted.")


# ------------------------- Members ------------------------- #
@app.command("list-members")
def cli_list_members(search: Optional[str] = typer.Option(None, "--search", "-s", help="Filter by name, email, phone or id")):
    """List registered members."""
    print_members(LibraryManager.get_instance().list_members(search))


@app.command("add-member")
def cli_add_member(
    name: str,
    email: str = typer.Option("", "--email", "-e"),
    phone: str = typer.Option("", "--phone", "-p"),
):
    """Register a new member."""
    lib = LibraryManager.get_instance()
    try:
        member = lib.add_member(name=name, email=email, phone=phone)
    except ValidationError as e:
        _fail(str(e))
    print(f"Member added: {member.id} - {member.name}")


@app.command("update-member")
def cli_update_member(
    member_id: str,
    name: Optional[str] = typer.Option(None, "--name", "-n"),
    email: Optional[str] = typer.Option(None, "--email", "-e"),
    phone: Optional[str] = typer.Option(None, "--phone", "-p"),
):
    """Change one or more fields of a member."""
    changes = {k: v for k, v in {"name": name, "email": email, "phone": phone}.items() if v is not None}
    if not changes:
        _fail("Nothing to update. Provide at least one field.")
    lib = LibraryManager.get_instance()
    try:
        member = lib.update_member(member_id, changes)
    except ValidationError as e:
        _fail(str(e))
    if member is None:
        print(f"Member {member_id} not found.")
        return
    print(f"Member updated: {member.id} - {member.name}")


@app.command("remove-member")
def cli_remove_member(member_id: str, yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation")):
    """Delete a member and their transaction history."""
    lib = LibraryManager.get_instance()
    if lib.find_member(member_id) is None:
        print(f"Member {member_id} not found.")
        return
    if not yes and not Confirm.ask("Delete this member? This will delete their transaction history.", console=console):
        print("Cancelled.")
        return
    lib.delete_member(member_id)
    print(f"Member {member_id} deleted.")


# ------------------------- Issue / Return ------------------------- #
@app.command("issue")
def cli_issue(
    book_id: str,
    member_id: str,
    days: Optional[int] = typer.Option(None, "--days", "-d", help="Loan length in days (default from DEFAULT_LOAN_DAYS)"),
):
    """Issue a copy of a book to a member."""
    lib = LibraryManager.get_instance()
    try:
        tx = lib.issue(book_id, member_id, days)
    except ValidationError as e:
        _fail(str(e))
    book = lib.find_book(tx.book_id)
    member = lib.find_member(tx.member_id)
    print(f'Issued "{book.title}" to {member.name}. Due {format_date(tx.due_at)} ({tx.id})')


@app.command("return")
def cli_return(transaction_id: str):
    """Return the book of an active issue transaction."""
    lib = LibraryManager.get_instance()
    tx = lib.return_transaction(transaction_id)
    if tx is None:
        print(f"No active issue with id {transaction_id}.")
        return
    print(f"Book returned ({tx.id}).")


@app.command("active")
def cli_active():
    """Show the currently issued books."""
    print_active_issues(LibraryManager.get_instance().active_issue_rows())


@app.command("stats")
def cli_stats():
    """Show the dashboard counts."""
    print_stats_result(LibraryManager.get_instance().dashboard_counts())


@app.command("export")
def cli_export(
    kind: str = typer.Argument("books", help="books | members | transactions"),
    output: Optional[str] = typer.Option(None, "--output-file", "-f", help="File name (default: <kind>.csv)"),
):
    """Export books, members or transactions to CSV."""
    lib = LibraryManager.get_instance()
    sources = {
        "books": lib.list_books,
        "members": lib.list_members,
        "transactions": lib.list_transactions,
    }
    source = sources.get(kind.lower())
    if source is None:
        _fail(f"Unsupported export: {kind}. Use books, members or transactions.")
    records = source()
    path = export_csv(records, output or f"{kind.lower()}.csv")
    if path is None:
        print(f"No {kind.lower()} to export.")
        return
    print(f"{len(records)} {kind.lower()} exported to {path}")


@app.command("serve")
def cli_serve():
    """Start the HTTP API with uvicorn."""
    host = settings.api_host
    port = int(settings.api_port)
    url = f"http://{host}:{port}/docs"
    print(f"Starting API on {url}")
    try:
        webbrowser.open(url)
    except webbrowser.Error:
        logger.debug("No browser available")
    args = [
        sys.executable,
        "-m", "uvicorn",
        "api:app",
        "--host", host,
        "--port", str(port),
    ]
    if settings.debug:
        args.append("--reload")
    subprocess.run(args)


if __name__ == "__main__":
    app()
