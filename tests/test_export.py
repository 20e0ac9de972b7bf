from export import export_csv, to_csv


def test_books_csv_layout(lib):
    lib.add_book(title="Clean Code", author="Robert C. Martin", isbn="0132350882", copies=2, category="Software Engineering")
    lib.add_book(title="Discrete Mathematics", author="Rosen", isbn="0073383090", copies=2, category="Mathematics")

    lines = to_csv(lib.list_books()).split("\n")

    assert lines == [
        "id,title,author,isbn,copies,category",
        '"B2","Discrete Mathematics","Rosen","0073383090","2","Mathematics"',
        '"B1","Clean Code","Robert C. Martin","0132350882","2","Software Engineering"',
    ]


def test_header_follows_first_record_order():
    rows = [{"b": 1, "a": None}, {"a": "x", "b": 2, "extra": "ignored"}]
    assert to_csv(rows) == 'b,a\n"1",""\n"2","x"'


def test_embedded_quotes_are_doubled():
    assert to_csv([{"title": 'The "Best" Book'}]) == 'title\n"The ""Best"" Book"'


def test_empty_list_produces_nothing(tmp_path):
    assert to_csv([]) == ""
    assert export_csv([], "books.csv", directory=str(tmp_path)) is None
    assert list(tmp_path.iterdir()) == []


def test_export_writes_utf8_file(lib, tmp_path):
    lib.add_member(name="Çağrı Öztürk", email="cagri@example.com")
    path = export_csv(lib.list_members(), "members.csv", directory=str(tmp_path))

    assert path == tmp_path / "members.csv"
    assert path.read_text(encoding="utf-8") == 'id,name,email,phone\n"M1","Çağrı Öztürk","cagri@example.com",""'


def test_transactions_export_uses_iso_timestamps(lib):
    lib.add_book(title="Dune")
    lib.add_member(name="Ann")
    lib.issue("B1", "M1", 14)

    header, row = to_csv(lib.list_transactions()).split("\n")
    assert header == "id,book_id,member_id,kind,issued_at,due_at,returned,returned_at,issue_id"
    assert row == '"T1","B1","M1","issue","2024-01-01T09:00:00+00:00","2024-01-15T09:00:00+00:00","False","",""'
