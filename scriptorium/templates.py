from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping

ARTICLE_TEMPLATE = "article.html"
INDEX_TEMPLATE = "index.html"
CATEGORIES_TEMPLATE = "categories.html"
SYNTAX_TEMPLATE = "syntax.html"
REQUIRED_TEMPLATES = (ARTICLE_TEMPLATE, INDEX_TEMPLATE, CATEGORIES_TEMPLATE)
FRAGMENT_FILES = frozenset(REQUIRED_TEMPLATES + (SYNTAX_TEMPLATE,))

ARTICLE_BEGIN = "{#ARTICLE_BEGIN}"
ARTICLE_END = "{#ARTICLE_END}"
CATEGORY_BEGIN = "{#CATEGORY_BEGIN}"
CATEGORY_END = "{#CATEGORY_END}"

PLACEHOLDERS = frozenset(
    {
        "TITLE",
        "DATE",
        "AUTHOR",
        "BLOG_TITLE",
        "LINK",
        "SUMMARY",
        "CONTENT",
        "KEYWORDS",
        "TOC",
        "ROOT_LINK",
        "RELATIVE_ROOT_LINK",
        "PARENT_LINK",
        "CATEGORY_TITLE",
        "CATEGORY_ID",
        "CATEGORY_LINK",
    }
)
PLACEHOLDER_RE = re.compile(r"\{#([A-Z_]+)\}")


class TemplateError(Exception):
    pass


@dataclass(frozen=True)
class TemplateBundle:
    article: str
    header: str
    index_item: str
    footer: str
    categories_header: str
    category_header: str
    category_item: str
    category_footer: str
    categories_footer: str
    syntax: str = ""


def placeholder(name: str) -> str:
    return f"{{#{name}}}"


def uses(template: str, name: str) -> bool:
    return placeholder(name) in template


def populate(template: str, bindings: Mapping[str, str]) -> str:
    """Replace every ``{#NAME}`` whose name is bound.

    Substitution is a single pass over the template: values are inserted
    verbatim and never scanned again, and unbound placeholders stay in place.
    """

    def repl(match: re.Match) -> str:
        value = bindings.get(match.group(1))
        return match.group(0) if value is None else value

    return PLACEHOLDER_RE.sub(repl, template)


def split_section(text: str, begin: str, end: str, name: str) -> tuple[str, str, str]:
    start = text.find(begin)
    stop = text.find(end, start + len(begin)) if start != -1 else -1
    if start == -1 or stop == -1:
        raise TemplateError(f"Template {name} must contain {begin} and {end}.")
    return text[:start], text[start + len(begin) : stop], text[stop + len(end) :]


def read_template(path: Path) -> str:
    return path.read_text(encoding="utf-8").lstrip("\ufeff")


def load_templates(template_dir: Path) -> TemplateBundle:
    missing = [name for name in REQUIRED_TEMPLATES if not (template_dir / name).is_file()]
    if missing:
        raise TemplateError(
            f"Unable to find the template files {', '.join(missing)} at path {template_dir}."
        )
    article = read_template(template_dir / ARTICLE_TEMPLATE)
    header, index_item, footer = split_section(
        read_template(template_dir / INDEX_TEMPLATE), ARTICLE_BEGIN, ARTICLE_END, INDEX_TEMPLATE
    )
    categories_header, category_block, categories_footer = split_section(
        read_template(template_dir / CATEGORIES_TEMPLATE),
        CATEGORY_BEGIN,
        CATEGORY_END,
        CATEGORIES_TEMPLATE,
    )
    category_header, category_item, category_footer = split_section(
        category_block, ARTICLE_BEGIN, ARTICLE_END, CATEGORIES_TEMPLATE
    )
    syntax_path = template_dir / SYNTAX_TEMPLATE
    syntax = read_template(syntax_path) if syntax_path.is_file() else ""
    return TemplateBundle(
        article=article,
        header=header,
        index_item=index_item,
        footer=footer,
        categories_header=categories_header,
        category_header=category_header,
        category_item=category_item,
        category_footer=category_footer,
        categories_footer=categories_footer,
        syntax=syntax,
    )


def template_assets(template_dir: Path) -> list[Path]:
    """Files of the template directory that are copied to the site as is."""
    if not template_dir.is_dir():
        return []
    return sorted(
        item
        for item in template_dir.iterdir()
        if item.name not in FRAGMENT_FILES and not item.name.startswith(".")
    )
