"""Tests for the dump import pipeline."""
import logging

from betterreads.importer import (
    AUTHORS_STAGE,
    WORKS_STAGE,
    import_authors,
    import_works,
    run_import,
)
from betterreads.models import Author


AUTHORS = [
    {"key": "/authors/A1", "name": "Jane", "personal_name": "Jane Q. Writer"},
    {"key": "/authors/A2", "name": "John"},
]

WORKS = [
    {
        "key": "/works/OL123W",
        "title": "Shared Book",
        "covers": [101, 202],
        "authors": [{"author": {"key": "/authors/A1"}}, {"author": {"key": "/authors/A9"}}],
    },
    {"key": "/works/OL456W", "title": "Solo Book", "authors": [{"author": {"key": "/authors/A2"}}]},
]


def test_import_authors(db, write_dump):
    """Test that every valid author line is saved."""
    path = write_dump("authors.txt", AUTHORS)

    stats = import_authors(path, db)

    assert stats.completed
    assert stats.lines == 2
    assert stats.saved == 2
    assert stats.failed == 0
    assert db.authors["A1"] == Author("A1", "Jane", "Jane Q. Writer")
    assert db.authors["A2"].personal_name == ""


def test_import_authors_is_idempotent(db, write_dump):
    """Test that re-importing the same dump yields the same records."""
    path = write_dump("authors.txt", AUTHORS)

    import_authors(path, db)
    first = dict(db.authors)
    import_authors(path, db)

    assert db.authors == first
    assert db.author_writes == 4


def test_import_authors_isolates_malformed_lines(db, write_dump):
    """Test that bad lines are skipped and the rest still import."""
    path = write_dump("authors.txt", [
        AUTHORS[0],
        "/type/author\t/authors/BAD\t1\t2008\t{this is not json",
        {"name": "No Key"},
        AUTHORS[1],
    ])

    stats = import_authors(path, db)

    assert stats.completed
    assert stats.lines == 4
    assert stats.saved == 2
    assert stats.failed == 2
    assert set(db.authors) == {"A1", "A2"}


def test_import_authors_missing_file(db, tmp_path, caplog):
    """Test that an unreadable dump aborts only the stage."""
    with caplog.at_level(logging.ERROR):
        stats = import_authors(str(tmp_path / "missing.txt"), db)

    assert not stats.completed
    assert stats.lines == 0
    assert db.authors == {}
    assert "cannot read" in caplog.text


def test_import_works_denormalizes_author_names(db, write_dump):
    """Test positional correspondence between author IDs and names."""
    db.upsert_author(Author("A1", "Jane"))
    db.upsert_author(Author("A2", "John"))
    path = write_dump("works.txt", WORKS, record_type="/type/work")

    stats = import_works(path, db)

    assert stats.saved == 2
    book = db.books["OL123W"]
    assert book.cover_ids == ["101", "202"]
    assert book.author_ids == ["A1", "A9"]
    assert book.author_names == ["Jane", "Unknown Author"]
    assert db.books["OL456W"].author_names == ["John"]


def test_import_works_discards_whole_record_on_bad_field(db, write_dump):
    """Test that one malformed nested field loses the whole book."""
    path = write_dump("works.txt", [
        {"key": "/works/OL1W", "title": "Bad Cover", "covers": [101, None]},
        {"key": "/works/OL2W", "title": "Bad Date", "created": {"value": "yesterday"}},
        {"key": "/works/OL3W", "title": "Good"},
    ], record_type="/type/work")

    stats = import_works(path, db)

    assert stats.lines == 3
    assert stats.saved == 1
    assert stats.failed == 2
    assert set(db.books) == {"OL3W"}


def test_import_works_survives_store_errors(db, write_dump, monkeypatch):
    """Test that an unexpected error on one line does not stop the stage."""
    path = write_dump("works.txt", WORKS, record_type="/type/work")
    real_get_author = db.get_author

    def flaky_get_author(author_id):
        if author_id == "A2":
            raise RuntimeError("connection reset")
        return real_get_author(author_id)

    monkeypatch.setattr(db, "get_author", flaky_get_author)

    stats = import_works(path, db)

    assert stats.completed
    assert stats.saved == 1
    assert stats.failed == 1
    assert set(db.books) == {"OL123W"}


def test_works_before_authors_resolve_to_unknown(db, write_dump):
    """Test that works imported before their authors get the sentinel."""
    works_path = write_dump("works.txt", WORKS, record_type="/type/work")
    authors_path = write_dump("authors.txt", AUTHORS)

    import_works(works_path, db)
    import_authors(authors_path, db)

    assert db.books["OL123W"].author_names == ["Unknown Author", "Unknown Author"]
    assert db.authors["A1"].name == "Jane"


def test_run_import_orders_stages_and_writes_checkpoints(db, write_dump):
    """Test the full pipeline runs authors first and checkpoints both stages."""
    authors_path = write_dump("authors.txt", AUTHORS)
    works_path = write_dump("works.txt", WORKS, record_type="/type/work")

    results = run_import(db, authors_path, works_path)

    assert results[AUTHORS_STAGE].saved == 2
    assert results[WORKS_STAGE].saved == 2
    assert db.books["OL123W"].author_names == ["Jane", "Unknown Author"]
    assert db.checkpoints == {AUTHORS_STAGE, WORKS_STAGE}


def test_run_import_warns_without_author_checkpoint(db, write_dump, tmp_path, caplog):
    """Test that a failed author stage is flagged before works run."""
    works_path = write_dump("works.txt", WORKS, record_type="/type/work")

    with caplog.at_level(logging.WARNING):
        results = run_import(db, str(tmp_path / "missing.txt"), works_path)

    assert not results[AUTHORS_STAGE].completed
    assert results[WORKS_STAGE].completed
    assert "No completed author import" in caplog.text
    assert db.checkpoints == {WORKS_STAGE}


def test_run_import_skip_works(db, write_dump):
    """Test skipping the works stage."""
    authors_path = write_dump("authors.txt", AUTHORS)

    results = run_import(db, authors_path, "unused.txt", skip_works=True)

    assert list(results) == [AUTHORS_STAGE]
    assert db.books == {}


def test_import_authors_skips_undecodable_line(db, tmp_path):
    """Test that invalid UTF-8 on one line skips only that line."""
    path = tmp_path / "authors.txt"
    path.write_bytes(
        b'/type/author\t/authors/A1\t1\t2008\t{"key": "/authors/A1", "name": "Jane"}\n'
        b'/type/author\t/authors/A3\t1\t2008\t{"key": "/authors/A3", "name": "Bad \xff\xfe"}\n'
        b'/type/author\t/authors/A2\t1\t2008\t{"key": "/authors/A2", "name": "John"}\n'
    )

    stats = import_authors(str(path), db)

    assert stats.completed
    assert stats.lines == 3
    assert stats.saved == 2
    assert stats.failed == 1
    assert set(db.authors) == {"A1", "A2"}


def test_import_authors_ignores_trailing_content(db, write_dump):
    """Test that text after the JSON object does not fail the line."""
    path = write_dump("authors.txt", ['/type/author\t/authors/A1\t1\t2008\t{"key": "/authors/A1", "name": "Jane"}\ttrailer'])

    stats = import_authors(path, db)

    assert stats.saved == 1
    assert db.authors["A1"].name == "Jane"


def test_run_import_survives_author_store_errors(db, write_dump, monkeypatch):
    """Test that a store error on one author does not stop either stage."""
    authors_path = write_dump("authors.txt", AUTHORS)
    works_path = write_dump("works.txt", WORKS, record_type="/type/work")
    real_upsert_author = db.upsert_author

    def flaky_upsert_author(author):
        if author.id == "A1":
            raise RuntimeError("pool exhausted")
        return real_upsert_author(author)

    monkeypatch.setattr(db, "upsert_author", flaky_upsert_author)

    results = run_import(db, authors_path, works_path)

    assert results[AUTHORS_STAGE].completed
    assert results[AUTHORS_STAGE].saved == 1
    assert results[AUTHORS_STAGE].failed == 1
    assert set(db.authors) == {"A2"}
    assert results[WORKS_STAGE].saved == 2
    assert db.books["OL123W"].author_names == ["Unknown Author", "Unknown Author"]
    assert db.books["OL456W"].author_names == ["John"]
