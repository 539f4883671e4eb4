from __future__ import annotations

import datetime as dt
import html
from pathlib import Path
from typing import Iterable, Optional, Sequence

from .config import Settings
from .models import Page, PageArticle
from .paths import absolutize_media
from .utils import join_url, publication_datetime, rfc822_date, site_url

FEED_LOCATION = Path("feed.xml")
SITEMAP_LOCATION = Path("sitemap.xml")


def cdata(text: str) -> str:
    return "<![CDATA[" + text.replace("]]>", "]]]]><![CDATA[>") + "]]>"


def feed_items(pages: Sequence[PageArticle], max_items: int) -> list[PageArticle]:
    """The last ``max_items`` public pages of a chronological list."""
    public = [page for page in pages if page.article.is_public]
    start = max(0, len(public) - max(0, max_items))
    return public[start:]


def build_feed(
    pages: Sequence[PageArticle],
    settings: Settings,
    max_items: Optional[int] = None,
    now: Optional[dt.datetime] = None,
) -> str:
    """RSS 2.0 document for the most recent public articles.

    ``pages`` are expected oldest first; items keep that order.
    """
    if max_items is None:
        max_items = settings.rss_count
    now = now or dt.datetime.now(dt.timezone.utc)
    root = site_url(settings.site_root)
    title = html.escape(settings.blog_title)
    description = f"{settings.blog_title}, a blog"
    if settings.default_author:
        description += f" by {settings.default_author}"

    lines = [
        '<?xml version="1.0" encoding="utf-8"?>',
        '<rss version="2.0"',
        '\txmlns:atom="http://www.w3.org/2005/Atom"',
        '\txmlns:content="http://purl.org/rss/1.0/modules/content/"',
        '\txmlns:dc="http://purl.org/dc/elements/1.1/" >',
        "<channel>",
        f"\t<title>{title}</title>",
        f'\t<atom:link href="{join_url(root, FEED_LOCATION.as_posix())}" rel="self" type="application/rss+xml" />',
        f"\t<link>{root}</link>",
        f"\t<description>{html.escape(description)}.</description>",
        "\t<language>en-US</language>",
        f"\t<lastBuildDate>{rfc822_date(now)}</lastBuildDate>",
    ]
    for page in feed_items(pages, max_items):
        article = page.article
        url = join_url(root, page.location.as_posix())
        parent_url = join_url(root, page.location.parent.as_posix() + "/")
        content = absolutize_media(page.inner_content, parent_url)
        lines.extend(
            [
                "\t<item>",
                f"\t\t<title>{html.escape(article.title)}</title>",
                f"\t\t<pubDate>{rfc822_date(publication_datetime(article.date))}</pubDate>",
                f"\t\t<link>{url}</link>",
                f"\t\t<dc:creator>{html.escape(article.author)}</dc:creator>",
                f"\t\t<description>{html.escape(page.summary)}</description>",
                f"\t\t<guid>{url}</guid>",
                f"\t\t<content:encoded>{cdata(content)}</content:encoded>",
                "\t</item>",
            ]
        )
    lines.extend(["</channel>", "</rss>"])
    return "\n".join(lines)


def sitemap_entry(loc: str, changefreq: str, priority: str, lastmod: Optional[dt.date] = None) -> str:
    parts = ["\t<url>", f"\t\t<loc>{html.escape(loc)}</loc>", f"\t\t<changefreq>{changefreq}</changefreq>"]
    if lastmod is not None:
        parts.append(f"\t\t<lastmod>{lastmod.isoformat()}</lastmod>")
    parts.append(f"\t\t<priority>{priority}</priority>")
    parts.append("\t</url>")
    return "\n".join(parts)


def build_sitemap(
    index_pages: Iterable[Page],
    article_pages: Iterable[PageArticle],
    other_pages: Iterable[Page],
    settings: Settings,
    today: Optional[dt.date] = None,
) -> str:
    today = today or dt.date.today()
    root = site_url(settings.site_root)
    entries = []
    for page in index_pages:
        entries.append(sitemap_entry(join_url(root, page.location.as_posix()), "monthly", "1.0", today))
    for page in article_pages:
        if not page.article.is_public:
            continue
        entries.append(
            sitemap_entry(join_url(root, page.location.as_posix()), "yearly", "0.6", page.article.date)
        )
    for page in other_pages:
        entries.append(sitemap_entry(join_url(root, page.location.as_posix()), "yearly", "0.1"))
    return "\n".join(
        [
            '<?xml version="1.0" encoding="UTF-8"?>',
            '<urlset xmlns="http://www.sitemaps.org/schemas/sitemap/0.9">',
            *entries,
            "</urlset>",
        ]
    )


def feed_page(pages: Sequence[PageArticle], settings: Settings, now: Optional[dt.datetime] = None) -> Page:
    return Page(location=FEED_LOCATION, html=build_feed(pages, settings, now=now))


def sitemap_page(
    index_pages: Iterable[Page],
    article_pages: Iterable[PageArticle],
    other_pages: Iterable[Page],
    settings: Settings,
    today: Optional[dt.date] = None,
) -> Page:
    return Page(
        location=SITEMAP_LOCATION,
        html=build_sitemap(index_pages, article_pages, other_pages, settings, today),
    )
