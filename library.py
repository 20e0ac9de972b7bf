import dataclasses
import logging
from typing import Any, Callable, Dict, List, Optional, Type, TypeVar

from book import Book
from config import settings
from database import BOOKS_KEY, MEMBERS_KEY, SEEDS, TRANSACTIONS_KEY, KeyValueStore
from exceptions import ValidationError
from ids import Clock, IdGenerator, RandomIdGenerator, add_days, utc_now
from member import Member
from transaction import ISSUE, RETURN, Transaction
from utils.validators import NumberValidator, TextValidator

logger = logging.getLogger(__name__)

R = TypeVar("R", Book, Member, Transaction)

BOOK_SEARCH_FIELDS = ("title", "author", "isbn", "category", "id")
MEMBER_SEARCH_FIELDS = ("name", "email", "phone", "id")


class Library:
    """Catalog, roster and loan ledger for one library.

    The three collections are private; every change goes through the methods
    below and is written back to the store straight away. Availability and
    the dashboard figures are derived from the transaction rows on each call.
    """

    def __init__(
        self,
        db_file: Optional[str] = None,
        *,
        store: Optional[KeyValueStore] = None,
        id_generator: Optional[IdGenerator] = None,
        clock: Optional[Clock] = None,
        default_loan_days: Optional[int] = None,
        seed: bool = True,
    ) -> None:
        self.store = store if store is not None else KeyValueStore(db_file)
        self._new_id: Callable[[str], str] = id_generator or RandomIdGenerator()
        self._now: Clock = clock or utc_now
        self.default_loan_days = default_loan_days or settings.default_loan_days
        self._seed = seed

        self._books: List[Book] = self._load(BOOKS_KEY, Book)
        self._members: List[Member] = self._load(MEMBERS_KEY, Member)
        self._transactions: List[Transaction] = self._load(TRANSACTIONS_KEY, Transaction)
        self._drop_orphans()

        reserve = getattr(self._new_id, "reserve", None)
        if callable(reserve):
            reserve(r.id for r in [*self._books, *self._members, *self._transactions])

    # ------------------------- Catalog ------------------------- #
    def add_book(self, fields: Optional[Dict[str, Any]] = None, **kwargs: Any) -> Book:
        """Validate and insert a new book at the front of the catalog."""
        data = self._collect(fields, kwargs, Book)
        data["title"] = TextValidator.require(data.get("title"), "Book title is required")
        data["copies"] = NumberValidator.copies(data.get("copies", 1))

        book = Book.from_dict({**data, "id": self._new_id("B")})
        self._books.insert(0, book)
        self._save_books()
        logger.info(f"Book added: {book.id} '{book.title}'")
        return book

    def update_book(self, book_id: str, fields: Optional[Dict[str, Any]] = None, **kwargs: Any) -> Optional[Book]:
        """Merge the given fields into a book. Returns None if the id is unknown."""
        index = self._index_of(self._books, book_id)
        if index is None:
            return None

        changes = self._collect(fields, kwargs, Book)
        if "title" in changes:
            changes["title"] = TextValidator.require(changes["title"], "Book title is required")
        if "copies" in changes:
            copies = NumberValidator.copies(changes["copies"])
            on_loan = self._active_count(book_id)
            if copies < on_loan:
                raise ValidationError(f"Cannot reduce copies to {copies}: {on_loan} currently issued")
            changes["copies"] = copies

        book = dataclasses.replace(self._books[index], **changes)
        self._books[index] = book
        self._save_books()
        logger.info(f"Book updated: {book.id}")
        return book

    def delete_book(self, book_id: str) -> bool:
        """Remove a book together with every transaction that references it."""
        if self.find_book(book_id) is None:
            return False
        self._books = [b for b in self._books if b.id != book_id]
        self._save_books()
        removed = self._cascade(lambda t: t.book_id == book_id)
        logger.info(f"Book deleted: {book_id} ({removed} transactions removed)")
        return True

    def list_books(self, query: Optional[str] = None) -> List[Book]:
        return self._filter(self._books, query, BOOK_SEARCH_FIELDS)

    def find_book(self, book_id: str) -> Optional[Book]:
        index = self._index_of(self._books, book_id)
        return self._books[index] if index is not None else None

    # ------------------------- Roster ------------------------- #
    def add_member(self, fields: Optional[Dict[str, Any]] = None, **kwargs: Any) -> Member:
        """Validate and insert a new member at the front of the roster."""
        data = self._collect(fields, kwargs, Member)
        data["name"] = TextValidator.require(data.get("name"), "Member name is required")

        member = Member.from_dict({**data, "id": self._new_id("M")})
        self._members.insert(0, member)
        self._save_members()
        logger.info(f"Member added: {member.id} '{member.name}'")
        return member

    def update_member(self, member_id: str, fields: Optional[Dict[str, Any]] = None, **kwargs: Any) -> Optional[Member]:
        index = self._index_of(self._members, member_id)
        if index is None:
            return None

        changes = self._collect(fields, kwargs, Member)
        if "name" in changes:
            changes["name"] = TextValidator.require(changes["name"], "Member name is required")

        member = dataclasses.replace(self._members[index], **changes)
        self._members[index] = member
        self._save_members()
        logger.info(f"Member updated: {member.id}")
        return member

    def delete_member(self, member_id: str) -> bool:
        """Remove a member and their whole transaction history."""
        if self.find_member(member_id) is None:
            return False
        self._members = [m for m in self._members if m.id != member_id]
        self._save_members()
        removed = self._cascade(lambda t: t.member_id == member_id)
        logger.info(f"Member deleted: {member_id} ({removed} transactions removed)")
        return True

    def list_members(self, query: Optional[str] = None) -> List[Member]:
        return self._filter(self._members, query, MEMBER_SEARCH_FIELDS)

    def find_member(self, member_id: str) -> Optional[Member]:
        index = self._index_of(self._members, member_id)
        return self._members[index] if index is not None else None

    # ------------------------- Ledger ------------------------- #
    def issue(self, book_id: str, member_id: str, loan_days: Optional[int] = None) -> Transaction:
        """Lend one copy of a book to a member.

        Raises ValidationError, leaving the ledger untouched, when either id
        is unknown, the loan length is not a positive whole number, or no
        copy is available.
        """
        book = self.find_book(book_id)
        member = self.find_member(member_id)
        if book is None or member is None:
            raise ValidationError("Invalid book or member")
        days = NumberValidator.loan_days(self.default_loan_days if loan_days is None else loan_days)
        if self.available_copies(book_id) < 1:
            raise ValidationError("No available copies to issue")

        now = self._now()
        tx = Transaction(
            id=self._new_id("T"),
            book_id=book.id,
            member_id=member.id,
            kind=ISSUE,
            issued_at=now,
            due_at=add_days(now, days),
        )
        self._transactions.insert(0, tx)
        self._save_transactions()
        logger.info(f"Issued {book.id} to {member.id} as {tx.id}, due {tx.due_at.date().isoformat()}")
        return tx

    def return_transaction(self, transaction_id: str) -> Optional[Transaction]:
        """Close an open issue row.

        Unknown ids, return rows and rows already returned are ignored and
        None is returned. Otherwise the issue row is marked returned and a
        return row pointing at it is recorded.
        """
        index = self._index_of(self._transactions, transaction_id)
        if index is None:
            return None
        tx = self._transactions[index]
        if tx.kind != ISSUE or tx.returned:
            return None

        now = self._now()
        closed = dataclasses.replace(tx, returned=True, returned_at=now)
        self._transactions[index] = closed
        self._transactions.insert(0, Transaction(
            id=self._new_id("T"),
            book_id=tx.book_id,
            member_id=tx.member_id,
            kind=RETURN,
            issued_at=now,
            returned=True,
            returned_at=now,
            issue_id=tx.id,
        ))
        self._save_transactions()
        logger.info(f"Returned {tx.id} ({tx.book_id} from {tx.member_id})")
        return closed

    def available_copies(self, book_id: str) -> int:
        book = self.find_book(book_id)
        if book is None:
            return 0
        return max(0, book.copies - self._active_count(book_id))

    def active_issues(self) -> List[Transaction]:
        """Unreturned issue rows, newest first."""
        return [t for t in self._transactions if t.is_active]

    def active_issue_rows(self) -> List[Dict[str, Any]]:
        """Active issues joined with the book title and member name for display."""
        rows = []
        for t in self.active_issues():
            book = self.find_book(t.book_id)
            member = self.find_member(t.member_id)
            rows.append({
                "id": t.id,
                "book_id": t.book_id,
                "title": book.title if book and book.title else t.book_id,
                "member_id": t.member_id,
                "name": member.name if member and member.name else t.member_id,
                "issued_at": t.issued_at,
                "due_at": t.due_at,
            })
        return rows

    def list_transactions(self) -> List[Transaction]:
        return list(self._transactions)

    def find_transaction(self, transaction_id: str) -> Optional[Transaction]:
        index = self._index_of(self._transactions, transaction_id)
        return self._transactions[index] if index is not None else None

    def dashboard_counts(self) -> Dict[str, int]:
        return {
            "total_books": len(self._books),
            "total_members": len(self._members),
            "total_active_issues": len(self.active_issues()),
        }

    # ------------------------- Persistence ------------------------- #
    def _load(self, key: str, record_cls: Type[R]) -> List[R]:
        raw = self.store.load(key)
        if raw is None:
            return self._seed_for(key, record_cls, "no stored data")
        if not isinstance(raw, list):
            return self._seed_for(key, record_cls, "stored value is not a list")
        if not all(isinstance(item, dict) for item in raw):
            return self._seed_for(key, record_cls, "stored list holds non-record items")
        try:
            return [record_cls.from_dict(item) for item in raw]
        except (KeyError, TypeError, ValueError) as e:
            return self._seed_for(key, record_cls, f"malformed record ({e})")

    def _drop_orphans(self) -> None:
        """Discard loaded transactions whose book or member is gone."""
        book_ids = {b.id for b in self._books}
        member_ids = {m.id for m in self._members}
        removed = self._cascade(lambda t: t.book_id not in book_ids or t.member_id not in member_ids)
        if removed:
            logger.warning(f"{TRANSACTIONS_KEY}: dropped {removed} rows referencing missing books or members")

    def _seed_for(self, key: str, record_cls: Type[R], reason: str) -> List[R]:
        records = [record_cls.from_dict(item) for item in SEEDS[key]()] if self._seed else []
        logger.warning(f"{key}: {reason}, starting with {len(records)} seed records")
        self._save(key, records)
        return records

    def _save(self, key: str, records: List[Any]) -> None:
        if not self.store.save(key, [r.to_dict() for r in records]):
            logger.warning(f"{key}: changes kept in memory only")

    def _save_books(self) -> None:
        self._save(BOOKS_KEY, self._books)

    def _save_members(self) -> None:
        self._save(MEMBERS_KEY, self._members)

    def _save_transactions(self) -> None:
        self._save(TRANSACTIONS_KEY, self._transactions)

    # ------------------------- Utilities ------------------------- #
    def _active_count(self, book_id: str) -> int:
        return sum(1 for t in self._transactions if t.book_id == book_id and t.is_active)

    def _cascade(self, references: Callable[[Transaction], bool]) -> int:
        kept = [t for t in self._transactions if not references(t)]
        removed = len(self._transactions) - len(kept)
        if removed:
            self._transactions = kept
            self._save_transactions()
        return removed

    @staticmethod
    def _collect(fields: Optional[Dict[str, Any]], extra: Dict[str, Any], record_cls: type) -> Dict[str, Any]:
        # ids are assigned once and never taken from input
        known = {f.name for f in dataclasses.fields(record_cls)} - {"id"}
        merged = {**(fields or {}), **extra}
        return {k: v for k, v in merged.items() if k in known}

    @staticmethod
    def _index_of(records: List[R], record_id: str) -> Optional[int]:
        for i, record in enumerate(records):
            if record.id == record_id:
                return i
        return None

    @staticmethod
    def _filter(records: List[R], query: Optional[str], attrs: tuple) -> List[R]:
        q = TextValidator.clean(query).lower()
        if not q:
            return list(records)
        return [r for r in records if any(q in str(getattr(r, a) or "").lower() for a in attrs)]
