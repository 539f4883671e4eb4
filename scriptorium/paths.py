from __future__ import annotations

import re
from pathlib import Path
from urllib.parse import unquote

from .models import Article, ArticleType
from .text import sanitize_url

SRC_MARKER = 'src="'
LINK_ATTR_RE = re.compile(r'(\s(?:src|href)=")([^"]*)"')
EXTERNAL_PREFIXES = ("http", "www.", "data:")
# A space between the closing bracket and the path of a Markdown image ends up
# as an encoded tab in front of the link.
ENCODED_TAB = "%09"


def base_directory(article_type: ArticleType) -> str:
    if article_type is ArticleType.PUBLIC:
        return "articles"
    return "drafts"


def index_name(article_type: ArticleType) -> str:
    if article_type is ArticleType.PUBLIC:
        return "index.html"
    return "index-drafts.html"


def resolve_url(article: Article) -> str:
    slug = sanitize_url(article.title)
    if article.date is None:
        return f"/{slug}"
    return f"{article.date.year}/{article.date.month:02d}/{slug}"


def page_location(article: Article) -> Path:
    url = resolve_url(article).lstrip("/")
    return Path(base_directory(article.type), f"{url}.html")


def category_location(identifier: str) -> Path:
    return Path("categories", f"{identifier}.html")


def calendar_location(year: int) -> Path:
    return Path(str(year), "index.html")


def relative_root(location: Path) -> str:
    depth = len(location.parts) - 1
    if depth <= 0:
        return "./"
    return "../" * depth


def is_external(link: str) -> bool:
    return link.startswith(EXTERNAL_PREFIXES)


def collect_local_media(
    content: str, location: Path, source_dir: Path
) -> tuple[str, list[tuple[Path, Path]]]:
    """Find local ``src`` references and move them next to the page.

    Returns the rewritten HTML and the ``(source, destination)`` copy list,
    destinations being relative to the output root. Every asset of a page
    lands in a directory named after the page, beside it.
    """
    asset_dir = location.with_suffix("")
    files: list[tuple[Path, Path]] = []
    replacements = {}
    pos = content.find(SRC_MARKER)
    while pos != -1:
        start = pos + len(SRC_MARKER)
        end = content.find('"', start)
        if end == -1:
            break
        link = content[start:end]
        clean = link[len(ENCODED_TAB):] if link.startswith(ENCODED_TAB) else link
        clean = clean.strip()
        if clean and not is_external(clean) and link not in replacements:
            source = source_dir / unquote(clean)
            files.append((source, asset_dir / source.name))
            replacements[link] = f"{asset_dir.name}/{clean.rsplit('/', 1)[-1]}"
        pos = content.find(SRC_MARKER, end + 1)

    for link, new_link in replacements.items():
        content = content.replace(f'"{link}"', f'"{new_link}"')
    return content, files


def is_relative_link(link: str) -> bool:
    if not link or is_external(link) or link.startswith(("#", "/", "?")):
        return False
    # Any other scheme (mailto:, ftp:, ...) is absolute too.
    return ":" not in link.split("/", 1)[0]


def absolutize_media(content: str, parent_url: str) -> str:
    """Prefix relative ``src`` and ``href`` targets with ``parent_url``.

    Covers the links wrapping images as well as the images themselves.
    """

    def repl(match: re.Match) -> str:
        link = match.group(2)
        if not is_relative_link(link):
            return match.group(0)
        return f'{match.group(1)}{parent_url}{link}"'

    return LINK_ATTR_RE.sub(repl, content)
