from __future__ import annotations

import datetime as dt
import logging
from pathlib import Path
from typing import Optional

from .cache import list_items
from .models import Article, Keyword
from .text import normalize_keyword

LOGGER = logging.getLogger(__name__)

DRAFT_MARKER = "draft"


def is_article_file(path: Path) -> bool:
    if path.suffix != ".md":
        return False
    return not path.name.startswith(("_", "#", "."))


def parse_list(value: str) -> list[str]:
    items = [item.strip() for item in value.split(",")]
    return [item for item in items if item]


def parse_keywords(value: str) -> tuple[Keyword, ...]:
    keywords = []
    seen = set()
    for item in parse_list(value):
        identifier, name = normalize_keyword(item)
        if not identifier or identifier in seen:
            continue
        seen.add(identifier)
        keywords.append(Keyword(identifier=identifier, name=name))
    return tuple(keywords)


def parse_date(value: str, date_style: str) -> Optional[dt.date]:
    """Parse the date line of a header, None for drafts.

    Raises ValueError when the line is neither a draft marker nor a date.
    """
    value = value.strip()
    if not value or value.lower() == DRAFT_MARKER:
        return None
    return dt.datetime.strptime(value, date_style).date()


def parse_article(text: str, default_author: str, date_style: str) -> Optional[Article]:
    """Build an article from its source text.

    The header (title, date, author, keywords, one per line) is separated
    from the Markdown body by the first blank line.
    """
    text = text.lstrip("\ufeff").replace("\r\n", "\n")
    header, sep, body = text.partition("\n\n")
    if not sep or not header.strip() or not body.strip():
        return None
    lines = header.split("\n")
    title = lines[0].strip("#").strip()
    date_line = lines[1].strip() if len(lines) > 1 else ""
    date = parse_date(date_line, date_style)
    author = lines[2].strip() if len(lines) > 2 and lines[2].strip() else default_author
    keywords = parse_keywords(lines[3]) if len(lines) > 3 else ()
    return Article(
        title=title,
        date=date,
        author=author,
        content=body,
        keywords=keywords,
        date_label=date_line if date is not None else "",
    )


def load_article(path: Path, default_author: str, date_style: str) -> Optional[Article]:
    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        LOGGER.warning("Unable to read article %s: %s", path, exc)
        return None
    try:
        article = parse_article(text, default_author, date_style)
    except ValueError as exc:
        LOGGER.warning("Skipping %s, invalid date: %s", path.name, exc)
        return None
    if article is None:
        LOGGER.warning("Skipping %s, missing header or body.", path.name)
    return article


def sort_articles(articles: list[Article]) -> list[Article]:
    """Oldest public articles first, drafts last, stable otherwise."""
    return sorted(articles, key=lambda a: (a.date is None, a.date or dt.date.min))


def load_articles(articles_dir: Path, default_author: str, date_style: str) -> list[Article]:
    articles = []
    for path in list_items(articles_dir):
        if not is_article_file(path):
            continue
        article = load_article(path, default_author, date_style)
        if article is not None:
            articles.append(article)
    return sort_articles(articles)
