from __future__ import annotations

from dataclasses import dataclass, fields

from utils.validators import TextValidator


@dataclass
class Member:
    """A registered borrower."""

    id: str
    name: str
    email: str = ""
    phone: str = ""

    def __post_init__(self) -> None:
        self.name = TextValidator.clean(self.name)
        self.email = TextValidator.clean(self.email)
        self.phone = TextValidator.clean(self.phone)

    def __str__(self) -> str:  # pragma: no cover - string formatting trivial
        return f"{self.name} ({self.id})"

    def to_dict(self) -> dict:
        return {"id": self.id, "name": self.name, "email": self.email, "phone": self.phone}

    @staticmethod
    def from_dict(data: dict) -> "Member":
        known = {f.name for f in fields(Member)}
        return Member(**{k: v for k, v in data.items() if k in known})
