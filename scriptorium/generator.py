from __future__ import annotations

import datetime as dt
import enum
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Sequence

from .cache import WriteStatus, copy_item, copy_page_files, create_directory, list_items, write_page
from .config import Settings
from .feeds import feed_page, sitemap_page
from .models import Article, ArticleType, Page, PageArticle
from .pages import PageBuilder, collect_categories
from .paths import base_directory
from .render import ContentRenderer, syntax_stylesheet
from .templates import TemplateBundle, load_templates, template_assets

LOGGER = logging.getLogger(__name__)

SYNTAX_STYLESHEET = Path("syntax.css")


class Mode(enum.IntFlag):
    NONE = 0
    ARTICLES = 1
    DRAFTS = 2
    INDEX = 4
    RESOURCES = 8
    FORCE = 16
    ALL = ARTICLES | DRAFTS | INDEX | RESOURCES


@dataclass
class GenerationReport:
    written: list[Path] = field(default_factory=list)
    unchanged: int = 0
    failed: list[Path] = field(default_factory=list)
    asset_failures: int = 0
    resources_copied: int = 0
    resource_failures: int = 0

    def record(self, page: Page, status: WriteStatus) -> None:
        if status is WriteStatus.WRITTEN:
            self.written.append(page.location)
        elif status is WriteStatus.UNCHANGED:
            self.unchanged += 1
        else:
            self.failed.append(page.location)

    @property
    def ok(self) -> bool:
        return not self.failed and not self.asset_failures and not self.resource_failures


@dataclass
class SitePages:
    articles: list[PageArticle]
    indexes: list[Page]
    categories: list[Page]
    calendar: list[Page]
    extras: list[Page] = field(default_factory=list)

    def aggregates(self) -> list[Page]:
        return [*self.indexes, *self.categories, *self.calendar, *self.extras]


class Generator:
    def __init__(self, settings: Settings, templates: Optional[TemplateBundle] = None):
        self.settings = settings
        self.templates = templates if templates is not None else load_templates(settings.template_path)

    def build_site(
        self,
        articles: Sequence[Article],
        now: Optional[dt.datetime] = None,
    ) -> SitePages:
        """Render every page of the site in memory, nothing is written."""
        now = now or dt.datetime.now(dt.timezone.utc)
        with ContentRenderer(self.settings.render_options()) as renderer:
            builder = PageBuilder(self.settings, self.templates, renderer)
            pages = builder.build_article_pages(articles)
            categories = collect_categories(pages)
            main_index, drafts_index = builder.build_index_pages(pages)
            listing = builder.build_categories_listing(categories)
            category_pages = builder.build_category_pages(categories)
            calendar = builder.build_calendar_pages(pages) if self.settings.calendar_pages else []

        public = [page for page in pages if page.article.is_public]
        extras = [
            feed_page(public, self.settings, now=now),
            sitemap_page([main_index, listing], public, [*category_pages, *calendar], self.settings, now.date()),
        ]
        if self.settings.highlight_code:
            extras.append(Page(location=SYNTAX_STYLESHEET, html=syntax_stylesheet(self.settings.syntax_style)))
        return SitePages(
            articles=pages,
            indexes=[main_index, drafts_index, listing],
            categories=category_pages,
            calendar=calendar,
            extras=extras,
        )

    def process(
        self,
        articles: Sequence[Article],
        mode: Mode = Mode.ALL,
        now: Optional[dt.datetime] = None,
    ) -> GenerationReport:
        force = bool(mode & Mode.FORCE)
        output = self.settings.output_path
        report = GenerationReport()
        create_directory(output)
        self.copy_template_assets(report)

        LOGGER.info("Processing %d pages.", len(articles))
        site = self.build_site(articles, now)

        for article_type, flag in ((ArticleType.PUBLIC, Mode.ARTICLES), (ArticleType.DRAFT, Mode.DRAFTS)):
            if not mode & flag:
                continue
            create_directory(output / base_directory(article_type), force)
            before = len(report.written)
            for page in site.articles:
                if page.article.type is article_type:
                    self.save(page, force, report)
            LOGGER.info(
                "Created %d new %s pages.", len(report.written) - before, base_directory(article_type)
            )

        if mode & (Mode.INDEX | Mode.ARTICLES | Mode.DRAFTS):
            for page in site.aggregates():
                self.save(page, force, report)
                LOGGER.info("Generated %s.", output / page.location)

        if mode & Mode.RESOURCES:
            self.copy_resources(force, report)
        return report

    def save(self, page: Page, force: bool, report: GenerationReport) -> None:
        output = self.settings.output_path
        report.record(page, write_page(page, output, force))
        report.asset_failures += copy_page_files(page, output, force)

    def copy_template_assets(self, report: GenerationReport) -> None:
        # Template files always replace their copies in the output.
        for item in template_assets(self.settings.template_path):
            if not copy_item(item, self.settings.output_path / item.name, True):
                report.resource_failures += 1

    def copy_resources(self, force: bool, report: GenerationReport) -> None:
        LOGGER.info("Copying resources.")
        for item in list_items(self.settings.resources_path, include_dirs=True):
            if copy_item(item, self.settings.output_path / item.name, force):
                report.resources_copied += 1
            else:
                report.resource_failures += 1
