from __future__ import annotations

from dataclasses import dataclass, fields

from utils.validators import NumberValidator, TextValidator


@dataclass
class Book:
    """A catalogued title. ``copies`` is the total owned, not what is on the shelf."""

    id: str
    title: str
    author: str = ""
    isbn: str = ""
    copies: int = 1
    category: str = ""

    def __post_init__(self) -> None:
        self.title = TextValidator.clean(self.title)
        self.author = TextValidator.clean(self.author)
        self.isbn = TextValidator.clean(self.isbn)
        self.category = TextValidator.clean(self.category)
        self.copies = NumberValidator.copies(self.copies)

    def __str__(self) -> str:  # pragma: no cover - string formatting trivial
        return f"{self.title} by {self.author} ({self.id})"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "author": self.author,
            "isbn": self.isbn,
            "copies": self.copies,
            "category": self.category,
        }

    @staticmethod
    def from_dict(data: dict) -> "Book":
        known = {f.name for f in fields(Book)}
        return Book(**{k: v for k, v in data.items() if k in known})
