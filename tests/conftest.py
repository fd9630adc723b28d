"""Shared fixtures: an in-memory store and a dump file writer."""
import json

import pytest


class InMemoryDatabase:
    """Dict-backed stand-in for Database with the same store methods."""

    def __init__(self):
        self.authors = {}
        self.books = {}
        self.user_books = {}
        self.checkpoints = set()
        self.author_writes = 0

    def upsert_author(self, author):
        self.authors[author.id] = author
        self.author_writes += 1
        return True

    def get_author(self, author_id):
        return self.authors.get(author_id)

    def upsert_book(self, book):
        self.books[book.id] = book
        return True

    def get_book(self, book_id):
        return self.books.get(book_id)

    def upsert_user_book(self, user_book):
        self.user_books[(user_book.user_id, user_book.book_id)] = user_book
        return True

    def get_user_book(self, user_id, book_id):
        return self.user_books.get((user_id, book_id))

    def mark_import_completed(self, stage):
        self.checkpoints.add(stage)
        return True

    def import_completed(self, stage):
        return stage in self.checkpoints


@pytest.fixture
def db():
    return InMemoryDatabase()


@pytest.fixture
def write_dump(tmp_path):
    """Write records (dicts or raw strings) as dump lines and return the path."""
    def _write(name, records, record_type="/type/author"):
        path = tmp_path / name
        lines = []
        for record in records:
            if isinstance(record, str):
                lines.append(record)
            else:
                key = record.get("key", "")
                lines.append(f"{record_type}\t{key}\t1\t2008-04-01T03:28:50.625462\t{json.dumps(record)}")
        path.write_text("\n".join(lines) + "\n", encoding="utf-8")
        return str(path)

    return _write
