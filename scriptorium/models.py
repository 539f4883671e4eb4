from __future__ import annotations

import datetime as dt
import enum
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional


class ArticleType(enum.Enum):
    PUBLIC = "public"
    DRAFT = "draft"


@dataclass(frozen=True)
class Keyword:
    """A category tag attached to an article.

    ``identifier`` is the normalized form shared by every spelling of the same
    keyword; ``name`` is the spelling shown to readers.
    """

    identifier: str
    name: str


@dataclass(frozen=True)
class Article:
    title: str
    date: Optional[dt.date]
    author: str
    content: str
    keywords: tuple[Keyword, ...] = ()
    date_label: str = ""

    @property
    def type(self) -> ArticleType:
        return ArticleType.PUBLIC if self.date is not None else ArticleType.DRAFT

    @property
    def is_public(self) -> bool:
        return self.type is ArticleType.PUBLIC

    def date_str(self) -> str:
        if self.date is None:
            return "DRAFT"
        return self.date_label or self.date.isoformat()


@dataclass
class Page:
    location: Path
    html: str = ""
    files: list[tuple[Path, Path]] = field(default_factory=list)


@dataclass
class PageArticle(Page):
    article: Optional[Article] = None
    summary: str = ""
    inner_content: str = ""
    snippet: str = ""


@dataclass
class Category:
    identifier: str
    name: str
    location: Path
    articles: list[PageArticle] = field(default_factory=list)
