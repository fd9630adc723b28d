"""Data models for authors, books and reading status."""
from dataclasses import dataclass, field
from datetime import date
from typing import Optional, List

COVER_IMAGE_ROOT = "https://covers.openlibrary.org/b/id/"
NO_IMAGE_URL = "/images/no-image.png"
UNKNOWN_AUTHOR = "Unknown Author"


def cover_image_url(cover_id, size: str = "L") -> str:
    """Compose an Open Library cover URL, or the placeholder if there is no cover."""
    if cover_id is None or str(cover_id).strip() == "":
        return NO_IMAGE_URL
    return f"{COVER_IMAGE_ROOT}{cover_id}-{size}.jpg"


@dataclass
class Author:
    """Author record keyed by Open Library author ID."""
    id: str
    name: str = ""
    personal_name: str = ""


@dataclass
class Book:
    """Work record with author names denormalized at import time."""
    id: str
    name: str = ""
    description: Optional[str] = None
    published_date: Optional[date] = None
    cover_ids: List[str] = field(default_factory=list)
    author_ids: List[str] = field(default_factory=list)
    author_names: List[str] = field(default_factory=list)

    @property
    def cover_url(self) -> str:
        """Large cover image for the first cover ID."""
        if self.cover_ids:
            return cover_image_url(self.cover_ids[0], "L")
        return NO_IMAGE_URL

    @property
    def authors_str(self) -> str:
        """Format author names as comma-separated string."""
        return ", ".join(self.author_names) if self.author_names else UNKNOWN_AUTHOR


@dataclass
class UserBook:
    """A user's reading status for one book."""
    user_id: str
    book_id: str
    started_date: Optional[date] = None
    completed_date: Optional[date] = None
    reading_status: str = ""
    rating: int = 0


@dataclass
class SearchResultBook:
    """One Open Library search hit, ready for display."""
    key: str
    title: str = ""
    author_name: List[str] = field(default_factory=list)
    first_publish_year: Optional[int] = None
    cover_url: str = NO_IMAGE_URL

    @property
    def authors_str(self) -> str:
        return ", ".join(self.author_name) if self.author_name else UNKNOWN_AUTHOR


@dataclass
class ImportStats:
    """Counters for one import stage."""
    stage: str
    lines: int = 0
    saved: int = 0
    failed: int = 0
    completed: bool = False
