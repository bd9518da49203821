"""Merge, deduplicate and rank book records from several catalogs."""
import logging
from typing import Dict, List, Optional, Tuple

from rapidfuzz import fuzz, utils

from bookmeta.models import BookRecord

logger = logging.getLogger(__name__)

# Combined fuzzy score must be below this to keep a record (0 = exact)
RELEVANCE_THRESHOLD = 0.4


def _normalize(value: Optional[str]) -> str:
    return (value or "").strip().lower()


def identifier_key(book: BookRecord) -> Optional[str]:
    """
    Grouping key for duplicate detection.

    ISBN when present, otherwise 'title|author', otherwise the title alone.
    Records without a usable title get no key.
    """
    title = _normalize(book.title)
    if not title:
        return None

    isbn = (book.isbn or "").strip()
    if isbn:
        return isbn

    author = _normalize(book.author)
    if author:
        return f"{title}|{author}"
    return title


def completeness_score(book: BookRecord) -> int:
    """
    Score how much metadata a record carries.

    One point per populated field; a description is worth two points plus
    one per 100 characters, up to three extra.
    """
    score = 0

    for value in (book.title, book.author, book.publisher, book.genre, book.series, book.isbn):
        if value:
            score += 1
    if book.published is not None:
        score += 1

    if book.description:
        score += 2
        score += min(3, len(book.description) // 100)

    return score


def merge_and_deduplicate(books: List[BookRecord]) -> List[BookRecord]:
    """
    Collapse duplicates, keeping the most complete record of each group.

    Groups come out in first-seen order. On equal scores the earliest record
    in the group wins, so the result depends only on input order.

    Args:
        books: Candidates concatenated across providers

    Returns:
        One record per identifier key
    """
    groups: Dict[str, List[BookRecord]] = {}

    for book in books:
        key = identifier_key(book)
        if key is None:
            continue
        groups.setdefault(key, []).append(book)

    merged = []
    for key, similar in groups.items():
        if len(similar) == 1:
            merged.append(similar[0])
            continue
        # max() returns the first of equal maxima
        best = max(similar, key=completeness_score)
        logger.debug(f"Merged {len(similar)} records for {key!r}")
        merged.append(best)

    return merged


def fuzzy_score(term: str, text: Optional[str]) -> float:
    """
    Fuzzy distance of a search term to a field, 0.0 (exact) to 1.0 (no match).

    The term may match anywhere inside the text; a term longer than the
    text is compared as a whole.
    """
    needle = utils.default_process(term or "")
    haystack = utils.default_process(text or "")
    if not needle or not haystack:
        return 1.0

    scorer = fuzz.partial_ratio if len(needle) <= len(haystack) else fuzz.ratio
    return 1.0 - scorer(needle, haystack) / 100.0


def whole_score(term: str, text: Optional[str]) -> float:
    """Distance of the term to the whole field; separates 'Dune' from 'Dune Part 3'."""
    needle = utils.default_process(term or "")
    haystack = utils.default_process(text or "")
    if not needle or not haystack:
        return 1.0
    return 1.0 - fuzz.ratio(needle, haystack) / 100.0


def _mean(scores: List[float]) -> float:
    if not scores:
        return 0.0
    return sum(scores) / len(scores)


def relevance_score(book: BookRecord, title: str, author: str) -> float:
    """Mean fuzzy score over whichever of title/author were searched for."""
    scores = []
    if title:
        scores.append(fuzzy_score(title, book.title))
    if author:
        scores.append(fuzzy_score(author, book.author))
    return _mean(scores)


def relevance_key(book: BookRecord, title: str, author: str) -> Tuple[float, float]:
    """Sort key: combined fuzzy score, then whole-field distance as tie-break."""
    whole = []
    if title:
        whole.append(whole_score(title, book.title))
    if author:
        whole.append(whole_score(author, book.author))
    return relevance_score(book, title, author), _mean(whole)


def filter_by_relevance(
    books: List[BookRecord],
    title: str,
    author: str,
    limit: int
) -> List[BookRecord]:
    """
    Keep records close to the search terms, best match first.

    Args:
        books: Deduplicated records
        title: Title search term ('' if not searched)
        author: Author search term ('' if not searched)
        limit: Maximum number of records to return

    Returns:
        Records with combined score below RELEVANCE_THRESHOLD, ascending;
        equal scores are ordered by how closely the whole field matches
    """
    title = (title or "").strip()
    author = (author or "").strip()
    if limit <= 0:
        return []
    if not title and not author:
        return books[:limit]

    scored: List[Tuple[Tuple[float, float], BookRecord]] = [
        (relevance_key(book, title, author), book) for book in books
    ]
    kept = [pair for pair in scored if pair[0][0] < RELEVANCE_THRESHOLD]
    kept.sort(key=lambda pair: pair[0])

    logger.info(f"Relevance filter kept {len(kept)}/{len(books)} books")
    return [book for _, book in kept[:limit]]
