import logging
import sqlite3
from contextlib import contextmanager
from typing import Iterator, List, Optional

from bookledger.book import Book
from bookledger.errors import AlreadyBorrowed, AlreadyExists, Exhausted, NotBorrowed
from bookledger.store import LedgerStore

logger = logging.getLogger(__name__)

ADMIN_KEY = "admin"


def get_db_connection(db_file: str) -> sqlite3.Connection:
    """Establishes a connection to the SQLite ledger file."""
    # One connection per store; callers serialize access (see api.ledger_lock)
    conn = sqlite3.connect(db_file, check_same_thread=False)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys=ON;")
    if db_file != ":memory:":
        conn.execute("PRAGMA journal_mode=WAL;")
        conn.execute("PRAGMA synchronous=NORMAL;")
    return conn


def create_tables(conn: sqlite3.Connection) -> None:
    """Creates the ledger tables if they don't exist."""
    with conn:
        conn.execute("""
            CREATE TABLE IF NOT EXISTS ledger_meta (
                key TEXT PRIMARY KEY,
                value TEXT NOT NULL
            )
        """)
        conn.execute("""
            CREATE TABLE IF NOT EXISTS books (
                id TEXT PRIMARY KEY,
                title TEXT NOT NULL UNIQUE,
                total_copies INTEGER NOT NULL CHECK(total_copies > 0),
                available_copies INTEGER NOT NULL
                    CHECK(available_copies >= 0 AND available_copies <= total_copies),
                registered_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        """)
        conn.execute("""
            CREATE TABLE IF NOT EXISTS loans (
                book_id TEXT NOT NULL,
                borrower TEXT NOT NULL,
                borrowed_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                PRIMARY KEY (book_id, borrower),
                FOREIGN KEY (book_id) REFERENCES books(id)
            )
        """)
        conn.execute("""
            CREATE TABLE IF NOT EXISTS borrow_history (
                seq INTEGER PRIMARY KEY AUTOINCREMENT,
                book_id TEXT NOT NULL,
                borrower TEXT NOT NULL,
                borrowed_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                FOREIGN KEY (book_id) REFERENCES books(id)
            )
        """)
        conn.execute("CREATE INDEX IF NOT EXISTS idx_borrow_history_book_id ON borrow_history(book_id, seq)")


class SQLiteStore(LedgerStore):
    """Durable ledger state in a single SQLite file.

    Books are ordered by rowid, which follows registration order since books are
    never deleted. Each ``record_*`` call runs in one transaction, so a failure
    rolls the whole mutation back; a constraint violation surfaces as the
    matching ledger error rather than a raw ``sqlite3.IntegrityError``.
    """

    def __init__(self, db_file: str) -> None:
        self.db_file = db_file
        self._conn = get_db_connection(db_file)
        create_tables(self._conn)
        logger.debug(f"Ledger store opened: {db_file}")

    @property
    def admin(self) -> Optional[str]:
        row = self._conn.execute("SELECT value FROM ledger_meta WHERE key = ?", (ADMIN_KEY,)).fetchone()
        return row["value"] if row else None

    def set_admin(self, identity: str) -> None:
        with self.transaction():
            self._conn.execute("INSERT OR IGNORE INTO ledger_meta (key, value) VALUES (?, ?)", (ADMIN_KEY, identity))

    def get_book(self, book_id: str) -> Optional[Book]:
        row = self._conn.execute(
            "SELECT id, title, total_copies, available_copies FROM books WHERE id = ?", (book_id,)
        ).fetchone()
        return Book.from_dict(dict(row)) if row else None

    def find_by_title(self, title: str) -> Optional[Book]:
        row = self._conn.execute(
            "SELECT id, title, total_copies, available_copies FROM books WHERE title = ?", (title,)
        ).fetchone()
        return Book.from_dict(dict(row)) if row else None

    def books(self) -> List[Book]:
        rows = self._conn.execute(
            "SELECT id, title, total_copies, available_copies FROM books ORDER BY rowid"
        ).fetchall()
        return [Book.from_dict(dict(row)) for row in rows]

    def count(self) -> int:
        return self._conn.execute("SELECT COUNT(*) FROM books").fetchone()[0]

    def has_loan(self, book_id: str, borrower: str) -> bool:
        row = self._conn.execute(
            "SELECT 1 FROM loans WHERE book_id = ? AND borrower = ?", (book_id, borrower)
        ).fetchone()
        return row is not None

    def history(self, book_id: str) -> List[str]:
        rows = self._conn.execute(
            "SELECT borrower FROM borrow_history WHERE book_id = ? ORDER BY seq", (book_id,)
        ).fetchall()
        return [row["borrower"] for row in rows]

    def insert_book(self, book: Book) -> None:
        with self.transaction():
            try:
                self._conn.execute(
                    "INSERT INTO books (id, title, total_copies, available_copies) VALUES (?, ?, ?, ?)",
                    (book.id, book.title, book.total_copies, book.available_copies),
                )
            except sqlite3.IntegrityError as e:
                raise AlreadyExists(f"book {book.title!r} already exists", title=book.title) from e

    def record_borrow(self, book_id: str, borrower: str) -> None:
        with self.transaction():
            try:
                self._conn.execute(
                    "UPDATE books SET available_copies = available_copies - 1 WHERE id = ?", (book_id,)
                )
            except sqlite3.IntegrityError as e:
                raise Exhausted(f"no copies of book {book_id} available", book_id=book_id) from e
            try:
                self._conn.execute("INSERT INTO loans (book_id, borrower) VALUES (?, ?)", (book_id, borrower))
            except sqlite3.IntegrityError as e:
                raise AlreadyBorrowed(f"{borrower} has already borrowed book {book_id}",
                                      book_id=book_id, borrower=borrower) from e
            self._conn.execute(
                "INSERT INTO borrow_history (book_id, borrower) VALUES (?, ?)", (book_id, borrower)
            )

    def record_return(self, book_id: str, borrower: str) -> None:
        with self.transaction():
            cursor = self._conn.execute(
                "DELETE FROM loans WHERE book_id = ? AND borrower = ?", (book_id, borrower)
            )
            if cursor.rowcount == 0:
                raise NotBorrowed(f"{borrower} has not borrowed book {book_id}",
                                  book_id=book_id, borrower=borrower)
            self._conn.execute(
                "UPDATE books SET available_copies = available_copies + 1 WHERE id = ?", (book_id,)
            )

    @contextmanager
    def transaction(self) -> Iterator[None]:
        """Run the enclosed reads and writes as one write transaction.

        ``BEGIN IMMEDIATE`` takes the write lock up front, so another connection to
        the same file waits instead of writing between our checks and our update.
        Nested calls join the outer transaction.
        """
        if self._conn.in_transaction:
            yield
            return
        self._conn.execute("BEGIN IMMEDIATE")
        try:
            yield
        except BaseException:
            self._conn.rollback()
            raise
        self._conn.commit()

    def close(self) -> None:
        self._conn.close()
