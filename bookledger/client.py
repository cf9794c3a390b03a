import logging
import time
from typing import List, Optional
from urllib.parse import quote

import httpx

from bookledger.book import Book
from bookledger.config import settings
from bookledger.errors import InvalidArgument, LedgerUnavailable, error_from_kind

logger = logging.getLogger(__name__)


class RemoteLedger:
    """Ledger served over the HTTP API, with the same methods as ``Ledger``.

    Error payloads are turned back into the typed ledger errors, so callers
    handle a remote ledger exactly like a local one.
    """

    def __init__(self, base_url: Optional[str] = None, api_key: Optional[str] = None,
                 timeout: Optional[float] = None, client: Optional[httpx.Client] = None) -> None:
        self.base_url = base_url or settings.remote_url
        self.api_key = api_key or settings.api_key
        self._client = client or httpx.Client(
            base_url=self.base_url,
            timeout=timeout or settings.http_timeout,
        )

    @property
    def admin(self) -> str:
        return self._get("/health")["admin"]

    # ------------------------- Mutations ------------------------- #
    def register(self, title: str, total_copies: int, caller: str) -> str:
        data = self._post("/books", caller, json={"title": title, "copies": total_copies})
        return data["id"]

    def borrow(self, book_id: str, borrower: str) -> None:
        self._post(f"/books/{quote(book_id, safe='')}/borrow", borrower)

    def return_(self, book_id: str, borrower: str) -> None:
        self._post(f"/books/{quote(book_id, safe='')}/return", borrower)

    # ------------------------- Queries ------------------------- #
    def get_book(self, title: str) -> Book:
        return Book.from_dict(self._get("/books/by-title", params={"title": title}))

    def get_book_by_id(self, book_id: str) -> Book:
        return Book.from_dict(self._get(f"/books/{quote(book_id, safe='')}"))

    def list_books(self) -> List[Book]:
        return [Book.from_dict(item) for item in self._get("/books")]

    def list_available(self) -> List[Book]:
        return [Book.from_dict(item) for item in self._get("/books/available")]

    def get_borrower_history(self, book_id: str) -> List[str]:
        return self._get(f"/books/{quote(book_id, safe='')}/borrowers")["borrowers"]

    def is_borrowing(self, book_id: str, borrower: str) -> bool:
        return self._get(f"/books/{quote(book_id, safe='')}/loans/{quote(borrower, safe='')}")["borrowing"]

    def count(self) -> int:
        return self._get("/books/count")["count"]

    def close(self) -> None:
        self._client.close()

    # ------------------------- HTTP helpers ------------------------- #
    def _get(self, path: str, params: Optional[dict] = None, retries: int = 3, backoff: float = 0.5):
        """GET with exponential backoff on transport errors; queries are safe to repeat."""
        for attempt in range(retries):
            try:
                resp = self._client.get(path, params=params)
                return self._decode(resp)
            except httpx.RequestError as exc:
                if attempt < retries - 1:
                    logger.warning(f"GET {path} failed ({exc}); retrying")
                    time.sleep(backoff * (2 ** attempt))
                else:
                    raise LedgerUnavailable(f"Ledger unreachable at {self.base_url}") from exc

    def _post(self, path: str, caller: str, json: Optional[dict] = None):
        headers = {"X-API-Key": self.api_key, "X-Caller": caller}
        try:
            resp = self._client.post(path, json=json, headers=headers)
        except httpx.RequestError as exc:
            raise LedgerUnavailable(f"Ledger unreachable at {self.base_url}") from exc
        return self._decode(resp)

    @staticmethod
    def _decode(resp: httpx.Response):
        if resp.status_code < 400:
            return resp.json()
        try:
            detail = resp.json().get("detail")
        except ValueError:
            detail = resp.text
        if isinstance(detail, dict) and "kind" in detail:
            raise error_from_kind(detail["kind"], detail.get("message", ""))
        if resp.status_code == 422:
            raise InvalidArgument(f"request rejected: {detail}")
        raise LedgerUnavailable(f"Unexpected response {resp.status_code}: {detail}")
