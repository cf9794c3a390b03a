import logging
from typing import List, Optional

from bookledger.book import Book, book_id_for
from bookledger.database import SQLiteStore
from bookledger.errors import (
    AlreadyBorrowed,
    AlreadyExists,
    Exhausted,
    InvalidArgument,
    LedgerError,
    NotBorrowed,
    NotFound,
    Unauthorized,
)
from bookledger.store import LedgerStore, MemoryStore

logger = logging.getLogger(__name__)


class Ledger:
    """Book inventory and loan ledger.

    Every mutation checks all of its preconditions before it touches the store,
    inside one store transaction, so a rejected call raises a ``LedgerError``
    and leaves no trace. The ledger is not thread-safe: whoever embeds it must
    apply operations one at a time.
    """

    def __init__(self, admin: Optional[str] = None, store: Optional[LedgerStore] = None) -> None:
        self.store = store if store is not None else MemoryStore()
        stored_admin = self.store.admin
        if stored_admin is None:
            if not admin:
                raise InvalidArgument("administrator identity required")
            self.store.set_admin(admin)
        elif admin and admin != stored_admin:
            # Administrator is fixed for the ledger's lifetime
            logger.warning(f"Ignoring administrator {admin!r}; ledger is administered by {stored_admin!r}")

    @classmethod
    def open(cls, db_file: str, admin: Optional[str] = None) -> "Ledger":
        """Open (or create) a ledger persisted in ``db_file``."""
        store = SQLiteStore(db_file)
        try:
            return cls(admin=admin, store=store)
        except LedgerError:
            store.close()
            raise

    @property
    def admin(self) -> str:
        return self.store.admin

    # ------------------------- Mutations ------------------------- #
    def register(self, title: str, total_copies: int, caller: str) -> str:
        """Register a new title with ``total_copies`` copies. Administrator only."""
        with self.store.transaction():
            try:
                if caller != self.admin:
                    raise Unauthorized("caller is not the administrator", caller=caller)
                if not isinstance(title, str) or not title:
                    raise InvalidArgument("empty title")
                if isinstance(total_copies, bool) or not isinstance(total_copies, int) or total_copies <= 0:
                    raise InvalidArgument("copies must be positive", copies=total_copies)
                if self.store.find_by_title(title) is not None:
                    raise AlreadyExists(f"book {title!r} already exists", title=title)
                book = Book(book_id_for(title), title, total_copies)
                self.store.insert_book(book)
            except LedgerError as e:
                self._log_rejection("register", e)
                raise

        logger.info(f"Registered {title!r} ({total_copies} copies) as {book.id}")
        return book.id

    def borrow(self, book_id: str, borrower: str) -> None:
        with self.store.transaction():
            try:
                book = self._require_book(book_id)
                if self.store.has_loan(book_id, borrower):
                    raise AlreadyBorrowed(f"{borrower} has already borrowed {book.title!r}",
                                          book_id=book_id, borrower=borrower)
                if book.available_copies <= 0:
                    raise Exhausted(f"no copies of {book.title!r} available", book_id=book_id)
                self.store.record_borrow(book_id, borrower)
            except LedgerError as e:
                self._log_rejection("borrow", e)
                raise

        logger.info(f"{borrower} borrowed {book.title!r}")

    def return_(self, book_id: str, borrower: str) -> None:
        with self.store.transaction():
            try:
                book = self._require_book(book_id)
                if not self.store.has_loan(book_id, borrower):
                    raise NotBorrowed(f"{borrower} has not borrowed {book.title!r}",
                                      book_id=book_id, borrower=borrower)
                self.store.record_return(book_id, borrower)
            except LedgerError as e:
                self._log_rejection("return", e)
                raise

        logger.info(f"{borrower} returned {book.title!r}")

    # ------------------------- Queries ------------------------- #
    def get_book(self, title: str) -> Book:
        book = self.store.find_by_title(title)
        if book is None:
            raise NotFound(f"book {title!r} does not exist", title=title)
        return book

    def get_book_by_id(self, book_id: str) -> Book:
        return self._require_book(book_id)

    def list_books(self) -> List[Book]:
        return self.store.books()

    def list_available(self) -> List[Book]:
        """Books with at least one copy on the shelf, in registration order."""
        return [book for book in self.store.books() if book.is_available]

    def get_borrower_history(self, book_id: str) -> List[str]:
        self._require_book(book_id)
        return self.store.history(book_id)

    def is_borrowing(self, book_id: str, borrower: str) -> bool:
        self._require_book(book_id)
        return self.store.has_loan(book_id, borrower)

    def count(self) -> int:
        return self.store.count()

    def close(self) -> None:
        self.store.close()

    # ------------------------- Utilities ------------------------- #
    def _require_book(self, book_id: str) -> Book:
        book = self.store.get_book(book_id)
        if book is None:
            raise NotFound(f"book {book_id} does not exist", book_id=book_id)
        return book

    @staticmethod
    def _log_rejection(operation: str, error: LedgerError) -> None:
        logger.warning(f"{operation} rejected ({error.kind.value}): {error}")
