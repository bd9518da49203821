"""Parse and normalize catalog API responses into book records."""
import html
import json
import logging
import re
from datetime import date, datetime
from typing import Dict, Any, List, Optional

from bookmeta.models import BookRecord

logger = logging.getLogger(__name__)

# Google Books uses ISO-ish dates; Open Library uses free-form English ones
DATE_FORMATS = [
    "%Y-%m-%d",
    "%Y-%m",
    "%Y",
    "%B %d, %Y",
    "%b %d, %Y",
    "%B %Y",
    "%b %Y",
]

_BREAK_RE = re.compile(r"<br\s*/?>|</p>", re.IGNORECASE)
_TAG_RE = re.compile(r"<[^>]+>")


def load_json_object(content: bytes) -> Dict[str, Any]:
    """Decode a response body that must be a JSON object."""
    data = json.loads(content)
    if not isinstance(data, dict):
        raise ValueError(f"Expected a JSON object, got {type(data).__name__}")
    return data


def sanitize_description(description: Optional[str]) -> Optional[str]:
    """
    Strip HTML from a description.

    Line breaks and paragraph ends become blank lines, remaining tags are
    removed and entities are unescaped.

    Args:
        description: Raw description, possibly HTML

    Returns:
        Plain text, or None if nothing is left
    """
    if not description:
        return None

    text = _BREAK_RE.sub("\n\n", description)
    text = _TAG_RE.sub("", text)
    text = html.unescape(text).replace("\xa0", " ")
    text = text.strip()

    return text or None


def parse_date(value: Optional[str]) -> Optional[date]:
    """Parse a publication date in any of DATE_FORMATS."""
    if not value:
        return None

    value = value.strip()
    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(value, fmt).date()
        except ValueError:
            continue

    logger.debug(f"Unrecognized date format: {value}")
    return None


def year_to_date(year: Any) -> Optional[date]:
    """January 1 of a year; month and day are not known."""
    if not isinstance(year, int) or isinstance(year, bool):
        return None
    if not 1 <= year <= 9999:
        return None
    return date(year, 1, 1)


def primary_isbn(
    identifiers: Optional[List[Dict[str, Any]]],
    input_isbn: Optional[str] = None
) -> Optional[str]:
    """
    Pick the ISBN to report for a volume.

    Prefers an exact match to the ISBN the caller searched for, then
    ISBN-13, then ISBN-10.

    Args:
        identifiers: Google Books industryIdentifiers list
        input_isbn: ISBN supplied by the caller, if any

    Returns:
        Selected identifier or None
    """
    if not identifiers:
        return None

    if input_isbn:
        for ident in identifiers:
            if ident.get("identifier") == input_isbn:
                return input_isbn

    for wanted in ("ISBN_13", "ISBN_10"):
        for ident in identifiers:
            if ident.get("type") == wanted and ident.get("identifier"):
                return ident["identifier"]

    return None


def full_title(volume_info: Dict[str, Any]) -> str:
    """Title combined with subtitle when one exists."""
    title = (volume_info.get("title") or "").strip()
    subtitle = (volume_info.get("subtitle") or "").strip()
    if title and subtitle:
        return f"{title}: {subtitle}"
    return title


def _join_names(names: Optional[List[Any]]) -> str:
    return ", ".join(str(n).strip() for n in names or [] if n and str(n).strip())


def _text(value: Any) -> Optional[str]:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def _first(values: Optional[List[Any]]) -> Optional[str]:
    # A bare string is not a list of values
    if not isinstance(values, list):
        return None
    for value in values:
        if isinstance(value, dict):
            value = value.get("name")
        if value and str(value).strip():
            return str(value).strip()
    return None


def parse_volume(item: Dict[str, Any], input_isbn: Optional[str] = None) -> Optional[BookRecord]:
    """
    Parse a single volume from the Google Books API.

    Args:
        item: Single item from the volumes response
        input_isbn: ISBN the caller searched for, if any

    Returns:
        BookRecord or None if the volume has no usable title
    """
    try:
        volume_info = item.get("volumeInfo", {})

        title = full_title(volume_info)
        if not title:
            return None

        return BookRecord(
            title=title,
            author=_join_names(volume_info.get("authors")),
            published=parse_date(volume_info.get("publishedDate")),
            publisher=_text(volume_info.get("publisher")),
            genre=_first(volume_info.get("categories")),
            series=_text(volume_info.get("series")),
            isbn=primary_isbn(volume_info.get("industryIdentifiers"), input_isbn),
            description=sanitize_description(volume_info.get("description"))
        )
    except (AttributeError, TypeError, ValueError) as e:
        # Log but don't crash - APIs can be unpredictable
        logger.warning(f"Failed to parse volume: {e}")
        return None


def parse_volumes_response(
    response_json: Dict[str, Any],
    input_isbn: Optional[str] = None
) -> List[BookRecord]:
    """
    Parse a full Google Books volumes response.

    Args:
        response_json: Complete API response JSON
        input_isbn: ISBN the caller searched for, if any

    Returns:
        List of BookRecord objects (empty if no items found)
    """
    books = []

    for item in response_json.get("items") or []:
        book = parse_volume(item, input_isbn)
        if book:
            books.append(book)

    return books


def parse_isbn_lookup(response_json: Dict[str, Any], isbn: str) -> List[BookRecord]:
    """
    Parse an Open Library bibkeys (jscmd=data) response.

    Returns a single-element list, or an empty one when the ISBN is not
    known or the entry has no title.
    """
    data = response_json.get(f"ISBN:{isbn}")
    if not isinstance(data, dict):
        return []

    title = (data.get("title") or "").strip()
    if not title:
        return []

    excerpt = None
    excerpts = data.get("excerpts")
    if isinstance(excerpts, list) and excerpts and isinstance(excerpts[0], dict):
        excerpt = excerpts[0].get("text")

    return [
        BookRecord(
            title=title,
            author=_join_names(a.get("name") for a in data.get("authors") or [] if isinstance(a, dict)),
            published=parse_date(data.get("publish_date")),
            publisher=_first(data.get("publishers")),
            genre=_first(data.get("subjects")),
            isbn=isbn,
            description=sanitize_description(excerpt)
        )
    ]


def parse_work_description(work_json: Dict[str, Any]) -> str:
    """Description of an Open Library work; either a string or {"value": ...}."""
    description = work_json.get("description")
    if isinstance(description, str):
        return description
    if isinstance(description, dict) and isinstance(description.get("value"), str):
        return description["value"]
    return ""


def parse_search_doc(
    doc: Dict[str, Any],
    description: Optional[str] = None,
    input_isbn: Optional[str] = None
) -> Optional[BookRecord]:
    """
    Parse one document from the Open Library search endpoint.

    Args:
        doc: Search result document
        description: Description fetched from the work record, if any
        input_isbn: ISBN the caller searched for, used when the doc has none

    Returns:
        BookRecord or None if the doc has no usable title
    """
    title = _text(doc.get("title"))
    if not title:
        return None

    return BookRecord(
        title=title,
        author=_join_names(doc.get("author_name")),
        published=year_to_date(doc.get("first_publish_year")),
        publisher=_first(doc.get("publisher")),
        genre=_first(doc.get("subject")),
        isbn=_first(doc.get("isbn")) or input_isbn or None,
        description=sanitize_description(description)
    )
