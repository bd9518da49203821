"""Data models for books."""
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Optional, List, Dict, Any


class ReadingStatus(str, Enum):
    """Reading lifecycle state owned by the host application."""
    UNREAD = "unread"
    READING = "reading"
    READ = "read"
    DELETED = "deleted"


@dataclass
class BookRecord:
    """Canonical book record every catalog normalizes into."""
    title: str
    author: str = ""
    published: Optional[date] = None
    publisher: Optional[str] = None
    genre: Optional[str] = None
    series: Optional[str] = None
    isbn: Optional[str] = None
    description: Optional[str] = None
    status: ReadingStatus = ReadingStatus.UNREAD
    date_started: Optional[date] = None
    date_finished: Optional[date] = None
    quotes: List[str] = field(default_factory=list)
    notes: List[str] = field(default_factory=list)
    tags: List[str] = field(default_factory=list)

    def __post_init__(self):
        if not self.title or not self.title.strip():
            raise ValueError("BookRecord requires a non-empty title")

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a JSON-friendly dictionary."""
        return {
            "title": self.title,
            "author": self.author,
            "published": self.published.isoformat() if self.published else None,
            "publisher": self.publisher,
            "genre": self.genre,
            "series": self.series,
            "isbn": self.isbn,
            "description": self.description,
            "status": self.status.value,
            "date_started": self.date_started.isoformat() if self.date_started else None,
            "date_finished": self.date_finished.isoformat() if self.date_finished else None,
            "quotes": list(self.quotes),
            "notes": list(self.notes),
            "tags": list(self.tags),
        }
