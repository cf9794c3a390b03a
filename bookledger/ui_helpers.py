import json
from typing import List

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from bookledger.book import Book

# Allowed values: 'plain' (default), 'json', 'rich'
OUTPUT_MODES = {"plain", "json", "rich"}

_console = Console()
_output_mode = "plain"


def set_output_mode(mode: str) -> None:
    global _output_mode
    mode = (mode or "").lower().strip()
    if mode in OUTPUT_MODES:
        _output_mode = mode


def get_output_mode() -> str:
    return _output_mode


def print_books(books: List[Book], title: str, empty_message: str) -> None:
    """Print books in the current output mode.
    - plain: 'id - title - available/total' lines, or empty_message
    - json: JSON array of book dicts
    - rich: Rich table
    """
    mode = get_output_mode()

    if mode == "json":
        print(json.dumps([b.to_dict() for b in books], ensure_ascii=False))
        return

    if not books:
        print(empty_message)
        return

    if mode == "rich":
        table = Table(title=f"📚 {title}", header_style="bold cyan")
        table.add_column("ID", style="magenta", no_wrap=True)
        table.add_column("Title", style="white")
        table.add_column("Available", justify="right")
        table.add_column("Total", justify="right")
        for b in books:
            table.add_row(b.id[:12], b.title, str(b.available_copies), str(b.total_copies))
        _console.print(table)
    else:
        print(f"{title}:")
        for b in books:
            print(f"{b.id} - {b.title} - {b.available_copies}/{b.total_copies}")


def print_book(book: Book) -> None:
    mode = get_output_mode()
    if mode == "json":
        print(json.dumps(book.to_dict(), ensure_ascii=False))
    elif mode == "rich":
        content = (f"[bold]ID:[/] {book.id}\n"
                   f"[bold]Available:[/] {book.available_copies} of {book.total_copies}")
        _console.print(Panel.fit(content, title=f"📖 {book.title}", border_style="blue"))
    else:
        print(f"ID: {book.id}")
        print(f"Title: {book.title}")
        print(f"Copies: {book.available_copies}/{book.total_copies} available")


def print_history(book: Book, borrowers: List[str]) -> None:
    mode = get_output_mode()
    if mode == "json":
        print(json.dumps({"book_id": book.id, "borrowers": borrowers}, ensure_ascii=False))
        return
    if not borrowers:
        print(f"{book.title} has never been borrowed.")
        return
    if mode == "rich":
        table = Table(title=f"🕘 Borrowers of {book.title}", header_style="bold cyan")
        table.add_column("#", justify="right")
        table.add_column("Borrower")
        for i, borrower in enumerate(borrowers, 1):
            table.add_row(str(i), borrower)
        _console.print(table)
    else:
        print("Borrowers History:")
        for borrower in borrowers:
            print(borrower)


def print_count(count: int) -> None:
    if get_output_mode() == "json":
        print(json.dumps({"count": count}))
    else:
        print(f"Total Books: {count}")
