from __future__ import annotations

import hashlib


def book_id_for(title: str) -> str:
    """Ids are a content hash of the title, so they are stable and unique as long as titles are."""
    return hashlib.sha256(title.encode("utf-8")).hexdigest()


class Book:
    """A single title held by the library, with its copy counts."""

    def __init__(self, id: str, title: str, total_copies: int, available_copies: int | None = None) -> None:
        self.id = id
        self.title = title
        self.total_copies = total_copies
        self.available_copies = total_copies if available_copies is None else available_copies

    def __str__(self) -> str:  # pragma: no cover - string formatting trivial
        return f"{self.title} ({self.available_copies}/{self.total_copies} available)"

    def __repr__(self) -> str:
        return (f"Book(id={self.id[:12]!r}, title={self.title!r}, "
                f"total_copies={self.total_copies}, available_copies={self.available_copies})")

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Book):
            return NotImplemented
        return self.to_dict() == other.to_dict()

    @property
    def is_available(self) -> bool:
        return self.available_copies > 0

    def copy(self) -> "Book":
        return Book(self.id, self.title, self.total_copies, self.available_copies)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "total_copies": self.total_copies,
            "available_copies": self.available_copies,
        }

    @staticmethod
    def from_dict(data: dict) -> "Book":
        return Book(
            id=data["id"],
            title=data["title"],
            total_copies=int(data["total_copies"]),
            available_copies=int(data["available_copies"]),
        )
