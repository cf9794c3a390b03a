import logging
from contextlib import contextmanager
from typing import Iterator, Optional, Union

import typer
import uvicorn

from bookledger.client import RemoteLedger
from bookledger.config import settings
from bookledger.errors import LedgerError, LedgerUnavailable
from bookledger.ledger import Ledger
from bookledger.ui_helpers import print_book, print_books, print_count, print_history, set_output_mode

APP_NAME = "Book Ledger CLI"
NETWORKS = ("local", "remote")

# Per-invocation options, filled in by the callback
_state = {
    "network": settings.network,
    "identity": settings.identity,
    "db_file": settings.db_file,
}

app = typer.Typer(help=APP_NAME)


@app.callback()
def _global_options(
    network: str = typer.Option(settings.network, "--network", "-n", help="Network: local | remote"),
    identity: str = typer.Option(settings.identity, "--as", "-u", help="Identity to act as"),
    db_file: str = typer.Option(settings.db_file, "--db", help="Ledger file of the local network"),
    output: str = typer.Option("plain", "--output", "-o", help="Output format: plain | json | rich"),
):
    """Global options for the CLI (network, identity, output mode)."""
    if network not in NETWORKS:
        raise typer.BadParameter(f"unknown network {network!r}; use one of: {', '.join(NETWORKS)}")
    logging.basicConfig(level=settings.log_level)
    _state.update(network=network, identity=identity, db_file=db_file)
    set_output_mode(output)


def _open_ledger() -> Union[Ledger, RemoteLedger]:
    if _state["network"] == "remote":
        return RemoteLedger(settings.remote_url)
    return Ledger.open(_state["db_file"], admin=settings.admin_identity)


@contextmanager
def ledger_session() -> Iterator[Union[Ledger, RemoteLedger]]:
    """Open the ledger of the selected network and report failures the same way for both."""
    ledger = _open_ledger()
    try:
        yield ledger
    except LedgerError as e:
        print(f"Operation failed: {e}")
        raise typer.Exit(code=1)
    except LedgerUnavailable as e:
        print(f"Ledger unavailable: {e}")
        raise typer.Exit(code=2)
    finally:
        ledger.close()


def _resolve_book_id(ledger, book_id: Optional[str], title: Optional[str]) -> str:
    if book_id:
        return book_id
    if title:
        return ledger.get_book(title).id
    print("Provide a book --id or --title.")
    raise typer.Exit(code=2)


@app.command("init")
def cli_init(admin: str = typer.Option(settings.admin_identity, "--admin", "-a", help="Administrator identity")):
    """Create the local ledger file, administered by ADMIN."""
    if _state["network"] != "local":
        print("init only applies to the local network.")
        raise typer.Exit(code=2)
    ledger = Ledger.open(_state["db_file"], admin=admin)
    try:
        print(f"Ledger ready at {_state['db_file']}, administered by {ledger.admin}.")
    finally:
        ledger.close()


@app.command("add")
def cli_add(
    title: str = typer.Option(..., "--title", "-t", help="Title of the book"),
    copies: int = typer.Option(..., "--copies", "-c", help="Number of book copies"),
):
    """Adds a book to the library (administrator only)."""
    with ledger_session() as ledger:
        book_id = ledger.register(title, copies, _state["identity"])
        print(f"Added: {title} ({copies} copies)")
        print(f"ID: {book_id}")


@app.command("borrow")
def cli_borrow(
    book_id: Optional[str] = typer.Option(None, "--id", "-i", help="ID of the book to borrow"),
    title: Optional[str] = typer.Option(None, "--title", "-t", help="Title of the book to borrow"),
):
    """Borrow a book by ID or title."""
    with ledger_session() as ledger:
        book_id = _resolve_book_id(ledger, book_id, title)
        ledger.borrow(book_id, _state["identity"])
        book = ledger.get_book_by_id(book_id)
        print(f"{_state['identity']} borrowed {book.title}. {book.available_copies} copies left.")


@app.command("return")
def cli_return(
    book_id: Optional[str] = typer.Option(None, "--id", "-i", help="ID of the book to return"),
    title: Optional[str] = typer.Option(None, "--title", "-t", help="Title of the book to return"),
):
    """Return a book by ID or title."""
    with ledger_session() as ledger:
        book_id = _resolve_book_id(ledger, book_id, title)
        ledger.return_(book_id, _state["identity"])
        book = ledger.get_book_by_id(book_id)
        print(f"{_state['identity']} returned {book.title}. {book.available_copies} copies available.")


@app.command("history")
def cli_history(
    book_id: Optional[str] = typer.Option(None, "--id", "-i", help="ID of the book"),
    title: Optional[str] = typer.Option(None, "--title", "-t", help="Title of the book"),
):
    """Get book borrowers history."""
    with ledger_session() as ledger:
        book_id = _resolve_book_id(ledger, book_id, title)
        print_history(ledger.get_book_by_id(book_id), ledger.get_borrower_history(book_id))


@app.command("get")
def cli_get(
    book_id: Optional[str] = typer.Option(None, "--id", "-i", help="ID of the book"),
    title: Optional[str] = typer.Option(None, "--title", "-t", help="Title of the book"),
):
    """Show a single book."""
    with ledger_session() as ledger:
        if title and not book_id:
            print_book(ledger.get_book(title))
        else:
            print_book(ledger.get_book_by_id(_resolve_book_id(ledger, book_id, title)))


@app.command("list")
def cli_list():
    """List available books."""
    with ledger_session() as ledger:
        print_books(ledger.list_available(), "Available Books", "No books available.")


@app.command("books")
def cli_books():
    """List every registered book, borrowed out or not."""
    with ledger_session() as ledger:
        print_books(ledger.list_books(), "Books", "No books in library.")


@app.command("count")
def cli_count():
    """Show how many titles are registered."""
    with ledger_session() as ledger:
        print_count(ledger.count())


@app.command("serve")
def cli_serve(
    host: str = typer.Option(settings.api_host, "--host", help="Host to bind"),
    port: int = typer.Option(settings.api_port, "--port", help="Port to bind"),
):
    """Serve the local ledger over HTTP."""
    print(f"Serving ledger {_state['db_file']} on http://{host}:{port}")
    settings.db_file = _state["db_file"]
    uvicorn.run("bookledger.api:app", host=host, port=port, log_level=settings.log_level.lower())


if __name__ == "__main__":
    app()
