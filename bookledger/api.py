import logging
from contextlib import asynccontextmanager
from datetime import datetime
from threading import RLock
from typing import Callable, List, Optional, TypeVar

from fastapi import Depends, FastAPI, Header, HTTPException, Query, Security
from fastapi.security import APIKeyHeader
from pydantic import BaseModel, Field

from bookledger import __version__
from bookledger.book import Book
from bookledger.config import settings
from bookledger.errors import ErrorKind, LedgerError
from bookledger.ledger import Ledger

logging.basicConfig(level=settings.log_level)
logger = logging.getLogger(__name__)

T = TypeVar("T")

# Single writer: every ledger call from the worker threadpool goes through this lock
ledger_lock = RLock()
_ledger: Optional[Ledger] = None


def get_ledger() -> Ledger:
    """Process-wide ledger backed by settings.db_file, created on first use."""
    global _ledger
    with ledger_lock:
        if _ledger is None:
            _ledger = Ledger.open(settings.db_file, admin=settings.admin_identity)
        return _ledger


@asynccontextmanager
async def lifespan(app: FastAPI):
    try:
        yield
    finally:
        global _ledger
        with ledger_lock:
            if _ledger is not None:
                _ledger.close()
                _ledger = None


app = FastAPI(title="Book Ledger API", version=__version__, lifespan=lifespan)

# --- Security ---
api_key_header = APIKeyHeader(name="X-API-Key")


def get_api_key(api_key: str = Security(api_key_header)):
    """Dependency to validate the transport key on mutating routes."""
    if api_key == settings.api_key:
        return api_key
    raise HTTPException(status_code=403, detail="Could not validate credentials")


def get_caller(x_caller: str = Header(..., min_length=1)) -> str:
    return x_caller


# --- Models ---
class BookModel(BaseModel):
    id: str
    title: str
    total_copies: int
    available_copies: int


class BookCreateModel(BaseModel):
    title: str
    copies: int = Field(description="Number of copies to register")


class RegisteredModel(BaseModel):
    id: str


class CountModel(BaseModel):
    count: int


class BorrowersModel(BaseModel):
    book_id: str
    borrowers: List[str]


class LoanModel(BaseModel):
    book: BookModel
    borrower: str


# --- Helpers ---
STATUS_BY_KIND = {
    ErrorKind.UNAUTHORIZED: 403,
    ErrorKind.INVALID_ARGUMENT: 400,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.ALREADY_EXISTS: 409,
    ErrorKind.EXHAUSTED: 409,
    ErrorKind.ALREADY_BORROWED: 409,
    ErrorKind.NOT_BORROWED: 409,
}


def _ledger_call(fn: Callable[[], T]) -> T:
    """Run one ledger operation under the lock and translate ledger errors to HTTP."""
    try:
        with ledger_lock:
            return fn()
    except LedgerError as e:
        raise HTTPException(status_code=STATUS_BY_KIND[e.kind], detail=e.to_dict())


def _book_model(book: Book) -> BookModel:
    return BookModel(**book.to_dict())


# --- Health ---
@app.get("/health")
def health(ledger: Ledger = Depends(get_ledger)):
    return {
        "status": "healthy",
        "timestamp": datetime.utcnow().isoformat() + "Z",
        "total_books": _ledger_call(ledger.count),
        "admin": _ledger_call(lambda: ledger.admin),
    }


# --- Queries ---
@app.get("/books", response_model=List[BookModel])
def list_books(ledger: Ledger = Depends(get_ledger)):
    return [_book_model(b) for b in _ledger_call(ledger.list_books)]


@app.get("/books/available", response_model=List[BookModel])
def list_available(ledger: Ledger = Depends(get_ledger)):
    return [_book_model(b) for b in _ledger_call(ledger.list_available)]


@app.get("/books/count", response_model=CountModel)
def count_books(ledger: Ledger = Depends(get_ledger)):
    return CountModel(count=_ledger_call(ledger.count))


@app.get("/books/by-title", response_model=BookModel)
def get_book_by_title(title: str = Query(...), ledger: Ledger = Depends(get_ledger)):
    return _book_model(_ledger_call(lambda: ledger.get_book(title)))


@app.get("/books/{book_id}", response_model=BookModel)
def get_book(book_id: str, ledger: Ledger = Depends(get_ledger)):
    return _book_model(_ledger_call(lambda: ledger.get_book_by_id(book_id)))


@app.get("/books/{book_id}/borrowers", response_model=BorrowersModel)
def get_borrowers(book_id: str, ledger: Ledger = Depends(get_ledger)):
    borrowers = _ledger_call(lambda: ledger.get_borrower_history(book_id))
    return BorrowersModel(book_id=book_id, borrowers=borrowers)


@app.get("/books/{book_id}/loans/{borrower}")
def get_loan(book_id: str, borrower: str, ledger: Ledger = Depends(get_ledger)):
    return {"book_id": book_id, "borrower": borrower,
            "borrowing": _ledger_call(lambda: ledger.is_borrowing(book_id, borrower))}


# --- Mutations ---
@app.post("/books", response_model=RegisteredModel, status_code=201)
def register_book(
    payload: BookCreateModel,
    caller: str = Depends(get_caller),
    api_key: str = Depends(get_api_key),
    ledger: Ledger = Depends(get_ledger),
):
    book_id = _ledger_call(lambda: ledger.register(payload.title, payload.copies, caller))
    return RegisteredModel(id=book_id)


@app.post("/books/{book_id}/borrow", response_model=LoanModel)
def borrow_book(
    book_id: str,
    caller: str = Depends(get_caller),
    api_key: str = Depends(get_api_key),
    ledger: Ledger = Depends(get_ledger),
):
    def op():
        ledger.borrow(book_id, caller)
        return ledger.get_book_by_id(book_id)

    return LoanModel(book=_book_model(_ledger_call(op)), borrower=caller)


@app.post("/books/{book_id}/return", response_model=LoanModel)
def return_book(
    book_id: str,
    caller: str = Depends(get_caller),
    api_key: str = Depends(get_api_key),
    ledger: Ledger = Depends(get_ledger),
):
    def op():
        ledger.return_(book_id, caller)
        return ledger.get_book_by_id(book_id)

    return LoanModel(book=_book_model(_ledger_call(op)), borrower=caller)
