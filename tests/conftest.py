from __future__ import annotations

import datetime as dt
from pathlib import Path

import pytest

from scriptorium.config import Settings
from scriptorium.content import parse_keywords
from scriptorium.models import Article
from scriptorium.templates import load_templates

ARTICLE_HTML = """<html><head><title>{#TITLE} - {#BLOG_TITLE}</title></head>
<body><a class="parent" href="{#PARENT_LINK}">back</a>
<h1>{#TITLE}</h1><p class="meta">{#DATE} by {#AUTHOR}</p>
<p class="tags">{#KEYWORDS}</p>
<div>{#CONTENT}</div>
</body></html>
"""

INDEX_HTML = """<html><head><title>{#BLOG_TITLE}</title></head><body>
{#ARTICLE_BEGIN}<article><a href="{#RELATIVE_ROOT_LINK}{#LINK}">{#TITLE}</a><p>{#SUMMARY}</p></article>{#ARTICLE_END}
</body></html>
"""

CATEGORIES_HTML = """<html><body><a class="parent" href="{#PARENT_LINK}">up</a>
{#CATEGORY_BEGIN}<section id="{#CATEGORY_ID}"><h2><a href="{#RELATIVE_ROOT_LINK}{#CATEGORY_LINK}">{#CATEGORY_TITLE}</a></h2>
{#ARTICLE_BEGIN}<li><a href="{#RELATIVE_ROOT_LINK}{#LINK}">{#TITLE}</a></li>{#ARTICLE_END}
</section>{#CATEGORY_END}
</body></html>
"""


def write_templates(template_dir: Path) -> Path:
    template_dir.mkdir(parents=True, exist_ok=True)
    (template_dir / "article.html").write_text(ARTICLE_HTML, encoding="utf-8")
    (template_dir / "index.html").write_text(INDEX_HTML, encoding="utf-8")
    (template_dir / "categories.html").write_text(CATEGORIES_HTML, encoding="utf-8")
    return template_dir


def build_article(title: str, date: dt.date | None = None, keywords: str = "", content: str = "Some text.") -> Article:
    return Article(
        title=title,
        date=date,
        author="Jane Doe",
        content=content,
        keywords=parse_keywords(keywords),
    )


@pytest.fixture
def make_article():
    return build_article


@pytest.fixture
def template_dir(tmp_path: Path) -> Path:
    return write_templates(tmp_path / "template")


@pytest.fixture
def templates(template_dir: Path):
    return load_templates(template_dir)


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return Settings.from_mapping(
        {"blog_title": "Test Blog", "site_root": "blog.example.com"},
        tmp_path,
    )


@pytest.fixture
def install_templates():
    return write_templates
