from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

ISSUE = "issue"
RETURN = "return"
KINDS = (ISSUE, RETURN)


def _to_iso(moment: Optional[datetime]) -> Optional[str]:
    return moment.isoformat() if moment is not None else None


def _from_iso(raw: Optional[str]) -> Optional[datetime]:
    if raw in (None, ""):
        return None
    return datetime.fromisoformat(raw)


def _to_bool(value) -> bool:
    if not isinstance(value, bool):
        raise ValueError(f"returned must be true or false, got {value!r}")
    return value


@dataclass
class Transaction:
    """One ledger row.

    Issue rows carry the loan (``due_at``) and the ``returned`` flag.
    Return rows are written once when a loan comes back and point at the
    issue row through ``issue_id``; they never count as active.
    """

    id: str
    book_id: str
    member_id: str
    kind: str
    issued_at: datetime
    due_at: Optional[datetime] = None
    returned: bool = False
    returned_at: Optional[datetime] = None
    issue_id: Optional[str] = None

    def __post_init__(self) -> None:
        if self.kind not in KINDS:
            raise ValueError(f"Unknown transaction kind: {self.kind!r}")

    @property
    def is_active(self) -> bool:
        return self.kind == ISSUE and not self.returned

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "book_id": self.book_id,
            "member_id": self.member_id,
            "kind": self.kind,
            "issued_at": _to_iso(self.issued_at),
            "due_at": _to_iso(self.due_at),
            "returned": self.returned,
            "returned_at": _to_iso(self.returned_at),
            "issue_id": self.issue_id,
        }

    @staticmethod
    def from_dict(data: dict) -> "Transaction":
        return Transaction(
            id=data["id"],
            book_id=data["book_id"],
            member_id=data["member_id"],
            kind=data["kind"],
            issued_at=_from_iso(data["issued_at"]),
            due_at=_from_iso(data.get("due_at")),
            returned=_to_bool(data.get("returned", False)),
            returned_at=_from_iso(data.get("returned_at")),
            issue_id=data.get("issue_id"),
        )
