from __future__ import annotations

import html
import logging
from collections import OrderedDict
from pathlib import Path
from typing import Iterable

from .config import Settings
from .models import Article, ArticleType, Category, Page, PageArticle
from .paths import (
    calendar_location,
    category_location,
    collect_local_media,
    index_name,
    page_location,
    relative_root,
)
from .render import ContentRenderer, RenderMode
from .templates import TemplateBundle, placeholder, populate, uses
from .text import summarize
from .utils import site_url

LOGGER = logging.getLogger(__name__)

CATEGORIES_INDEX = Path("categories", "index.html")


class PageBuilder:
    """Renders articles into pages and assembles the aggregate pages."""

    def __init__(self, settings: Settings, templates: TemplateBundle, renderer: ContentRenderer):
        self.settings = settings
        self.templates = templates
        self.renderer = renderer
        self.root_link = site_url(settings.site_root)

    # Article pages

    def build_article_page(self, article: Article) -> PageArticle:
        location = page_location(article)
        root = relative_root(location)
        content = self.renderer.render(article)
        summary = summarize(content, self.settings.summary_length)
        inner_content, files = collect_local_media(content, location, self.settings.articles_path)

        template = self.templates.article
        if self.templates.syntax and "<pre" in content:
            template = template.replace("</head>", f"\n{self.templates.syntax}\n</head>", 1)

        bindings = {
            "TITLE": html.escape(article.title),
            "DATE": html.escape(article.date_str()),
            "AUTHOR": html.escape(article.author),
            "BLOG_TITLE": html.escape(self.settings.blog_title),
            "LINK": location.as_posix(),
            "SUMMARY": html.escape(summary),
            "CONTENT": inner_content,
            "ROOT_LINK": self.root_link,
            "RELATIVE_ROOT_LINK": root,
            "PARENT_LINK": root + index_name(article.type),
        }
        if uses(template, "TOC"):
            bindings["TOC"] = self.renderer.render(article, RenderMode.TOC)
        if uses(template, "KEYWORDS"):
            bindings["KEYWORDS"] = self.keyword_links(article, root)

        page = PageArticle(
            location=location,
            html=populate(template, bindings),
            files=files,
            article=article,
            summary=summary,
            inner_content=inner_content,
        )
        page.snippet = populate(self.templates.index_item, self.item_bindings(page)) + "\n"
        return page

    def build_article_pages(self, articles: Iterable[Article]) -> list[PageArticle]:
        return [self.build_article_page(article) for article in articles]

    def keyword_links(self, article: Article, root: str) -> str:
        # Categories only gather public articles; drafts list plain names.
        if not article.is_public:
            return ", ".join(html.escape(keyword.name) for keyword in article.keywords)
        links = []
        for keyword in article.keywords:
            if self.settings.category_pages:
                href = f"{root}{category_location(keyword.identifier).as_posix()}"
            else:
                href = f"{root}{CATEGORIES_INDEX.as_posix()}#{keyword.identifier}"
            links.append(f'<a href="{href}">{html.escape(keyword.name)}</a>')
        return ", ".join(links)

    def item_bindings(self, page: PageArticle) -> dict[str, str]:
        """Bindings of an article inside an aggregate page.

        Links stay relative to the site root behind an unresolved
        ``{#RELATIVE_ROOT_LINK}``, filled in by the page embedding the item.
        """
        article = page.article
        return {
            "TITLE": html.escape(article.title),
            "DATE": html.escape(article.date_str()),
            "AUTHOR": html.escape(article.author),
            "LINK": page.location.as_posix(),
            "SUMMARY": html.escape(page.summary),
            "KEYWORDS": self.keyword_links(article, placeholder("RELATIVE_ROOT_LINK")),
        }

    # Aggregate pages

    def page_bindings(self, location: Path, parent: Path) -> dict[str, str]:
        root = relative_root(location)
        return {
            "BLOG_TITLE": html.escape(self.settings.blog_title),
            "AUTHOR": html.escape(self.settings.default_author),
            "ROOT_LINK": self.root_link,
            "RELATIVE_ROOT_LINK": root,
            "PARENT_LINK": root + parent.as_posix(),
        }

    def assemble(self, location: Path, parent: Path, header: str, blocks: Iterable[str], footer: str) -> Page:
        body = header + "".join(blocks) + footer
        return Page(location=location, html=populate(body, self.page_bindings(location, parent)))

    def category_block(self, identifier: str, title: str, link: Path, pages: Iterable[PageArticle]) -> str:
        items = [
            populate(self.templates.category_item, self.item_bindings(page)) + "\n"
            for page in newest_first(pages)
        ]
        block = self.templates.category_header + "".join(items) + self.templates.category_footer
        return populate(
            block,
            {
                "CATEGORY_TITLE": html.escape(title),
                "CATEGORY_ID": identifier,
                "CATEGORY_LINK": link.as_posix(),
            },
        )

    def build_index_pages(self, pages: list[PageArticle]) -> list[Page]:
        """Main index (public articles) and drafts index."""
        result = []
        for article_type in (ArticleType.PUBLIC, ArticleType.DRAFT):
            selected = [page for page in pages if page.article.type is article_type]
            location = Path(index_name(article_type))
            result.append(
                self.assemble(
                    location,
                    location,
                    self.templates.header,
                    (page.snippet for page in newest_first(selected)),
                    self.templates.footer,
                )
            )
        return result

    def build_categories_listing(self, categories: dict[str, Category]) -> Page:
        blocks = [
            self.category_block(category.identifier, category.name, category.location, category.articles)
            for category in categories.values()
        ]
        return self.assemble(
            CATEGORIES_INDEX,
            Path(index_name(ArticleType.PUBLIC)),
            self.templates.categories_header,
            blocks,
            self.templates.categories_footer,
        )

    def build_category_pages(self, categories: dict[str, Category]) -> list[Page]:
        result = []
        for category in categories.values():
            block = self.category_block(
                category.identifier, category.name, category.location, category.articles
            )
            result.append(
                self.assemble(
                    category.location,
                    CATEGORIES_INDEX,
                    self.templates.categories_header,
                    [block],
                    self.templates.categories_footer,
                )
            )
        return result

    def build_calendar_pages(self, pages: list[PageArticle]) -> list[Page]:
        result = []
        for year, year_pages in group_by_year(pages).items():
            location = calendar_location(year)
            block = self.category_block(str(year), str(year), location, year_pages)
            result.append(
                self.assemble(
                    location,
                    Path(index_name(ArticleType.PUBLIC)),
                    self.templates.categories_header,
                    [block],
                    self.templates.categories_footer,
                )
            )
        return result


def newest_first(pages: Iterable[PageArticle]) -> list[PageArticle]:
    return list(reversed(list(pages)))


def public_pages(pages: Iterable[PageArticle]) -> list[PageArticle]:
    return [page for page in pages if page.article.is_public]


def collect_categories(pages: Iterable[PageArticle]) -> dict[str, Category]:
    """Categories of the public articles, ordered by identifier.

    Each category lists its articles in the order they were given.
    """
    categories: dict[str, Category] = {}
    for page in public_pages(pages):
        for keyword in page.article.keywords:
            category = categories.get(keyword.identifier)
            if category is None:
                category = Category(
                    identifier=keyword.identifier,
                    name=keyword.name,
                    location=category_location(keyword.identifier),
                )
                categories[keyword.identifier] = category
            if not category.articles or category.articles[-1] is not page:
                category.articles.append(page)
    return OrderedDict(sorted(categories.items()))


def group_by_year(pages: Iterable[PageArticle]) -> dict[int, list[PageArticle]]:
    months: dict[tuple, list[PageArticle]] = {}
    for page in public_pages(pages):
        date = page.article.date
        months.setdefault((date.year, date.month), []).append(page)
    years: dict[int, list[PageArticle]] = OrderedDict()
    for (year, _month), month_pages in sorted(months.items()):
        years.setdefault(year, []).extend(month_pages)
    return years
