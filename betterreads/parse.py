"""Parse Open Library dump lines and search responses into models."""
import json
import logging
from datetime import datetime, date
from typing import Dict, Any, List, Optional

from betterreads.models import Author, Book, SearchResultBook, UserBook, cover_image_url

logger = logging.getLogger(__name__)

AUTHOR_KEY_PREFIX = "/authors/"
WORK_KEY_PREFIX = "/works/"

# yyyy-MM-dd'T'HH:mm:ss.SSSSSS
CREATED_FORMAT = "%Y-%m-%dT%H:%M:%S.%f"

FATAL = "fatal"
DROP = "drop"

# What happens to a work record when one of its nested fields is malformed.
# FATAL discards the whole record, DROP leaves that field empty and keeps it.
WORK_FIELD_POLICY = {
    "created": FATAL,
    "covers": FATAL,
    "authors": FATAL,
}


class ParseError(Exception):
    """Base class for dump parsing failures."""


class MalformedLineError(ParseError):
    """The line does not carry a JSON object."""


class RecordError(ParseError):
    """A field of an otherwise well-formed record could not be extracted."""

    def __init__(self, field: str, message: str):
        super().__init__(f"{field}: {message}")
        self.field = field


_decoder = json.JSONDecoder()


def decode_dump_line(raw_line: bytes) -> str:
    """Decode one raw dump line as UTF-8."""
    try:
        return raw_line.decode("utf-8")
    except UnicodeDecodeError as e:
        raise MalformedLineError(f"invalid UTF-8: {e}") from e


def parse_dump_line(line: str) -> Dict[str, Any]:
    """
    Extract the JSON object from one dump line.

    Dump lines look like ``<type>\\t<key>\\t<revision>\\t<timestamp>\\t{...}``;
    everything before the first ``{`` and after the end of the object is
    ignored.

    Args:
        line: Raw line from the dump file

    Returns:
        The decoded JSON object

    Raises:
        MalformedLineError: No JSON object could be decoded
    """
    start = line.find("{")
    if start < 0:
        raise MalformedLineError("no JSON object on line")

    try:
        record, _ = _decoder.raw_decode(line, start)
    except json.JSONDecodeError as e:
        raise MalformedLineError(f"invalid JSON: {e}") from e

    if not isinstance(record, dict):
        raise MalformedLineError("JSON payload is not an object")
    return record


def _opt_str(obj: Dict[str, Any], field: str) -> str:
    value = obj.get(field)
    if value is None:
        return ""
    return value if isinstance(value, str) else str(value)


def _extract_key(record: Dict[str, Any], prefix: str) -> str:
    key = record.get("key")
    if key is None:
        raise RecordError("key", "missing")
    if not isinstance(key, str):
        raise RecordError("key", f"expected string, got {type(key).__name__}")
    return key.removeprefix(prefix)


def parse_author(record: Dict[str, Any]) -> Author:
    """
    Build an Author from a decoded author dump record.

    Raises:
        RecordError: The record has no usable ``key``
    """
    return Author(
        id=_extract_key(record, AUTHOR_KEY_PREFIX),
        name=_opt_str(record, "name"),
        personal_name=_opt_str(record, "personal_name"),
    )


def _extract_description(record: Dict[str, Any]) -> Optional[str]:
    description = record.get("description")
    if isinstance(description, dict):
        return _opt_str(description, "value")
    if isinstance(description, str):
        return description
    return None


def _extract_published_date(record: Dict[str, Any]) -> Optional[date]:
    created = record.get("created")
    if not isinstance(created, dict):
        return None

    value = created.get("value")
    if not isinstance(value, str):
        raise RecordError("created", "missing value")
    try:
        return datetime.strptime(value, CREATED_FORMAT).date()
    except ValueError as e:
        raise RecordError("created", str(e)) from e


def _extract_cover_ids(record: Dict[str, Any]) -> List[str]:
    covers = record.get("covers")
    if not isinstance(covers, list):
        return []

    cover_ids = []
    for i, cover in enumerate(covers):
        if isinstance(cover, bool) or not isinstance(cover, (str, int, float)):
            raise RecordError("covers", f"entry {i} is not a cover ID: {cover!r}")
        cover_ids.append(str(cover))
    return cover_ids


def _extract_author_ids(record: Dict[str, Any]) -> List[str]:
    authors = record.get("authors")
    if not isinstance(authors, list):
        return []

    author_ids = []
    for i, entry in enumerate(authors):
        author = entry.get("author") if isinstance(entry, dict) else None
        key = author.get("key") if isinstance(author, dict) else None
        if not isinstance(key, str):
            raise RecordError("authors", f"entry {i} has no author.key")
        author_ids.append(key.removeprefix(AUTHOR_KEY_PREFIX))
    return author_ids


_WORK_EXTRACTORS = (
    ("created", "published_date", _extract_published_date),
    ("covers", "cover_ids", _extract_cover_ids),
    ("authors", "author_ids", _extract_author_ids),
)


def parse_work(record: Dict[str, Any], policy: Optional[Dict[str, str]] = None) -> Book:
    """
    Build a Book from a decoded works dump record.

    Author names are not resolved here; ``author_names`` is left empty for
    the importer to fill in against the author store.

    Args:
        record: Decoded works dump record
        policy: Per-field FATAL/DROP decisions (defaults to WORK_FIELD_POLICY)

    Returns:
        Book object

    Raises:
        RecordError: ``key`` is unusable, or a FATAL field is malformed
    """
    policy = WORK_FIELD_POLICY if policy is None else policy

    book = Book(
        id=_extract_key(record, WORK_KEY_PREFIX),
        name=_opt_str(record, "title"),
        description=_extract_description(record),
    )

    for field_name, attribute, extractor in _WORK_EXTRACTORS:
        try:
            value = extractor(record)
        except RecordError as e:
            if policy.get(field_name, FATAL) == FATAL:
                raise
            logger.warning(f"Dropping malformed field of work {book.id}: {e}")
            continue
        setattr(book, attribute, value)

    return book


def parse_search_result(doc: Dict[str, Any]) -> SearchResultBook:
    """Normalize one Open Library search doc for display."""
    authors = doc.get("author_name")
    if isinstance(authors, list):
        author_name = [str(a) for a in authors if a is not None]
    elif authors:
        author_name = [str(authors)]
    else:
        author_name = []

    return SearchResultBook(
        key=_opt_str(doc, "key").removeprefix(WORK_KEY_PREFIX),
        title=_opt_str(doc, "title"),
        author_name=author_name,
        first_publish_year=doc.get("first_publish_year"),
        cover_url=cover_image_url(doc.get("cover_i"), "M"),
    )


def parse_search_response(response_json: Dict[str, Any], limit: int = 100) -> List[SearchResultBook]:
    """
    Parse an Open Library search response.

    Args:
        response_json: Complete search.json response
        limit: Maximum number of docs to keep

    Returns:
        List of SearchResultBook objects (empty if no docs found)

    Raises:
        ValueError: The response is not a JSON object
    """
    if not isinstance(response_json, dict):
        raise ValueError(f"Unexpected search response: {type(response_json).__name__}")

    docs = response_json.get("docs")
    if not isinstance(docs, list):
        return []
    return [parse_search_result(doc) for doc in docs[:limit] if isinstance(doc, dict)]


MIN_RATING = 1
MAX_RATING = 5


def _parse_form_date(form: Dict[str, str], field: str) -> Optional[date]:
    value = (form.get(field) or "").strip()
    if not value:
        return None
    try:
        return date.fromisoformat(value)
    except ValueError as e:
        raise RecordError(field, f"invalid date {value!r}") from e


def parse_user_book_form(form: Dict[str, str], user_id: str) -> UserBook:
    """
    Build a UserBook from the reading-status form.

    Empty date fields mean "not set" and an empty rating means "not rated" (0).

    Raises:
        RecordError: bookId is missing, a date is invalid, or rating is out of range
    """
    book_id = (form.get("bookId") or "").strip()
    if not book_id:
        raise RecordError("bookId", "missing")

    rating = 0
    raw_rating = (form.get("rating") or "").strip()
    if raw_rating:
        try:
            rating = int(raw_rating)
        except ValueError as e:
            raise RecordError("rating", f"not an integer: {raw_rating!r}") from e
        if not MIN_RATING <= rating <= MAX_RATING:
            raise RecordError("rating", f"must be between {MIN_RATING} and {MAX_RATING}")

    return UserBook(
        user_id=user_id,
        book_id=book_id,
        started_date=_parse_form_date(form, "startDate"),
        completed_date=_parse_form_date(form, "completedDate"),
        reading_status=(form.get("status") or "").strip(),
        rating=rating,
    )
