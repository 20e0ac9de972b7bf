import logging
from contextlib import asynccontextmanager
from datetime import datetime
from typing import List, Optional

from fastapi import Depends, FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import Response
from pydantic import BaseModel, Field

from config import settings
from exceptions import ValidationError
from export import to_csv
from library import Library

logging.basicConfig(level=getattr(logging, settings.log_level, logging.INFO))
logger = logging.getLogger(__name__)

# Global library instance, created on startup unless already set (tests assign it directly)
library: Optional[Library] = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    global library
    if library is None:
        library = Library(settings.data_file)
        logger.info(f"Library loaded from {settings.data_file}")
    yield


app = FastAPI(title=settings.app_name, version=settings.app_version, lifespan=lifespan)

# --- CORS ---
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def get_library() -> Library:
    if library is None:
        raise HTTPException(status_code=503, detail="Library not initialised")
    return library


# --- Models ---
class BookModel(BaseModel):
    id: str
    title: str
    author: str = ""
    isbn: str = ""
    copies: int
    category: str = ""
    available: int


class BookCreateModel(BaseModel):
    title: str
    author: str = ""
    isbn: str = ""
    copies: int = Field(default=1, ge=0)
    category: str = ""


class BookUpdateModel(BaseModel):
    title: Optional[str] = None
    author: Optional[str] = None
    isbn: Optional[str] = None
    copies: Optional[int] = Field(default=None, ge=0)
    category: Optional[str] = None


class MemberModel(BaseModel):
    id: str
    name: str
    email: str = ""
    phone: str = ""


class MemberCreateModel(BaseModel):
    name: str
    email: str = ""
    phone: str = ""


class MemberUpdateModel(BaseModel):
    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None


class TransactionModel(BaseModel):
    id: str
    book_id: str
    member_id: str
    kind: str
    issued_at: datetime
    due_at: Optional[datetime] = None
    returned: bool = False
    returned_at: Optional[datetime] = None
    issue_id: Optional[str] = None


class ActiveIssueModel(BaseModel):
    id: str
    book_id: str
    title: str
    member_id: str
    name: str
    issued_at: datetime
    due_at: Optional[datetime] = None


class IssueRequest(BaseModel):
    book_id: str
    member_id: str
    loan_days: Optional[int] = Field(default=None, ge=1, description="Defaults to DEFAULT_LOAN_DAYS")


class StatsModel(BaseModel):
    total_books: int
    total_members: int
    total_active_issues: int


# --- Helper Functions ---
def _book_model(lib: Library, book) -> BookModel:
    return BookModel(**book.to_dict(), available=lib.available_copies(book.id))


def _transaction_model(tx) -> TransactionModel:
    return TransactionModel(**vars(tx))


def _changes(payload: BaseModel) -> dict:
    return payload.model_dump(exclude_unset=True, exclude_none=True)


# --- Health ---
@app.get("/health")
def health():
    return {"status": "ok", "app": settings.app_name, "version": settings.app_version}


# --- Books ---
@app.get("/books", response_model=List[BookModel])
def get_books(q: Optional[str] = Query(None, description="Search query"), lib: Library = Depends(get_library)):
    """List books, optionally filtered by title, author, ISBN, category or id."""
    return [_book_model(lib, b) for b in lib.list_books(q)]


@app.post("/books", response_model=BookModel, status_code=201)
def create_book(payload: BookCreateModel, lib: Library = Depends(get_library)):
    try:
        book = lib.add_book(payload.model_dump())
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return _book_model(lib, book)


@app.get("/books/{book_id}", response_model=BookModel)
def get_book(book_id: str, lib: Library = Depends(get_library)):
    book = lib.find_book(book_id)
    if book is None:
        raise HTTPException(status_code=404, detail="Book not found")
    return _book_model(lib, book)


@app.put("/books/{book_id}", response_model=BookModel)
def update_book(book_id: str, payload: BookUpdateModel, lib: Library = Depends(get_library)):
    try:
        book = lib.update_book(book_id, _changes(payload))
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    if book is None:
        raise HTTPException(status_code=404, detail="Book not found")
    return _book_model(lib, book)


@app.delete("/books/{book_id}")
def delete_book(book_id: str, lib: Library = Depends(get_library)):
    """Delete a book; its transactions go with it."""
    if not lib.delete_book(book_id):
        raise HTTPException(status_code=404, detail="Book not found")
    return {"deleted": book_id}


# --- Members ---
@app.get("/members", response_model=List[MemberModel])
def get_members(q: Optional[str] = Query(None, description="Search query"), lib: Library = Depends(get_library)):
    return [MemberModel(**m.to_dict()) for m in lib.list_members(q)]


@app.post("/members", response_model=MemberModel, status_code=201)
def create_member(payload: MemberCreateModel, lib: Library = Depends(get_library)):
    try:
        member = lib.add_member(payload.model_dump())
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return MemberModel(**member.to_dict())


@app.get("/members/{member_id}", response_model=MemberModel)
def get_member(member_id: str, lib: Library = Depends(get_library)):
    member = lib.find_member(member_id)
    if member is None:
        raise HTTPException(status_code=404, detail="Member not found")
    return MemberModel(**member.to_dict())


@app.put("/members/{member_id}", response_model=MemberModel)
def update_member(member_id: str, payload: MemberUpdateModel, lib: Library = Depends(get_library)):
    try:
        member = lib.update_member(member_id, _changes(payload))
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    if member is None:
        raise HTTPException(status_code=404, detail="Member not found")
    return MemberModel(**member.to_dict())


@app.delete("/members/{member_id}")
def delete_member(member_id: str, lib: Library = Depends(get_library)):
    """Delete a member together with their transaction history."""
    if not lib.delete_member(member_id):
        raise HTTPException(status_code=404, detail="Member not found")
    return {"deleted": member_id}


# --- Transactions ---
@app.get("/transactions", response_model=List[TransactionModel])
def get_transactions(lib: Library = Depends(get_library)):
    return [_transaction_model(t) for t in lib.list_transactions()]


@app.get("/transactions/active", response_model=List[ActiveIssueModel])
def get_active_issues(lib: Library = Depends(get_library)):
    return [ActiveIssueModel(**row) for row in lib.active_issue_rows()]


@app.post("/transactions/issue", response_model=TransactionModel, status_code=201)
def issue_book(payload: IssueRequest, lib: Library = Depends(get_library)):
    try:
        tx = lib.issue(payload.book_id, payload.member_id, payload.loan_days)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return _transaction_model(tx)


@app.post("/transactions/{transaction_id}/return", response_model=TransactionModel)
def return_book(transaction_id: str, lib: Library = Depends(get_library)):
    tx = lib.return_transaction(transaction_id)
    if tx is None:
        if lib.find_transaction(transaction_id) is None:
            raise HTTPException(status_code=404, detail="Transaction not found")
        raise HTTPException(status_code=409, detail="Transaction is not an active issue")
    return _transaction_model(tx)


@app.get("/stats", response_model=StatsModel)
def get_library_stats(lib: Library = Depends(get_library)):
    """Dashboard counts: titles, members, active issues."""
    return StatsModel(**lib.dashboard_counts())


# --- Export ---
@app.get("/export/{kind}.csv")
def export_records(kind: str, lib: Library = Depends(get_library)):
    sources = {
        "books": lib.list_books,
        "members": lib.list_members,
        "transactions": lib.list_transactions,
    }
    source = sources.get(kind)
    if source is None:
        raise HTTPException(status_code=404, detail=f"Unknown export: {kind}")
    records = source()
    if not records:
        return Response(status_code=204)
    return Response(
        content=to_csv(records),
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{kind}.csv"'},
    )
