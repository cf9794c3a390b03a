from __future__ import annotations

from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import Dict, Iterator, List, Optional, Set, Tuple

from bookledger.book import Book


class LedgerStore(ABC):
    """Storage engine behind a Ledger.

    Only the access patterns the ledger needs: unique lookup by id and by title,
    books in registration order, loan membership, and ordered history. The ledger
    validates before calling the ``record_*`` methods; each of those applies its
    whole mutation at once.
    """

    @property
    @abstractmethod
    def admin(self) -> Optional[str]:
        """Administrator identity, or None for a store that was never claimed."""

    @abstractmethod
    def set_admin(self, identity: str) -> None: ...

    @abstractmethod
    def get_book(self, book_id: str) -> Optional[Book]: ...

    @abstractmethod
    def find_by_title(self, title: str) -> Optional[Book]: ...

    @abstractmethod
    def books(self) -> List[Book]: ...

    @abstractmethod
    def count(self) -> int: ...

    @abstractmethod
    def has_loan(self, book_id: str, borrower: str) -> bool: ...

    @abstractmethod
    def history(self, book_id: str) -> List[str]: ...

    @abstractmethod
    def insert_book(self, book: Book) -> None: ...

    @abstractmethod
    def record_borrow(self, book_id: str, borrower: str) -> None: ...

    @abstractmethod
    def record_return(self, book_id: str, borrower: str) -> None: ...

    @contextmanager
    def transaction(self) -> Iterator[None]:
        """Hold the store for one check-and-apply step.

        Nothing else may write between the ledger's checks and its ``record_*``
        call. The in-memory store is owned by a single ledger, so there is nothing to hold.
        """
        yield

    def close(self) -> None:
        return None


class MemoryStore(LedgerStore):
    """In-process store. Every read hands out copies so callers hold snapshots."""

    def __init__(self, admin: Optional[str] = None) -> None:
        self._admin = admin
        self._books: Dict[str, Book] = {}  # insertion order is registration order
        self._ids_by_title: Dict[str, str] = {}
        self._loans: Set[Tuple[str, str]] = set()
        self._history: Dict[str, List[str]] = {}

    @property
    def admin(self) -> Optional[str]:
        return self._admin

    def set_admin(self, identity: str) -> None:
        self._admin = identity

    def get_book(self, book_id: str) -> Optional[Book]:
        book = self._books.get(book_id)
        return book.copy() if book else None

    def find_by_title(self, title: str) -> Optional[Book]:
        book_id = self._ids_by_title.get(title)
        return self.get_book(book_id) if book_id else None

    def books(self) -> List[Book]:
        return [book.copy() for book in self._books.values()]

    def count(self) -> int:
        return len(self._books)

    def has_loan(self, book_id: str, borrower: str) -> bool:
        return (book_id, borrower) in self._loans

    def history(self, book_id: str) -> List[str]:
        return list(self._history.get(book_id, []))

    def insert_book(self, book: Book) -> None:
        self._books[book.id] = book.copy()
        self._ids_by_title[book.title] = book.id
        self._history[book.id] = []

    def record_borrow(self, book_id: str, borrower: str) -> None:
        self._books[book_id].available_copies -= 1
        self._loans.add((book_id, borrower))
        self._history[book_id].append(borrower)

    def record_return(self, book_id: str, borrower: str) -> None:
        self._books[book_id].available_copies += 1
        self._loans.discard((book_id, borrower))
