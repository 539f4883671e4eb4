from __future__ import annotations

import enum
from dataclasses import dataclass

import markdown
from pygments.formatters import HtmlFormatter

from .markdown_ext import BlogSyntaxExtension, ImageExtension
from .models import Article

TOC_DEPTH = 3
CODE_CSS_CLASS = "codehilite"


class RenderMode(enum.Enum):
    CONTENT = "content"
    TOC = "toc"


@dataclass(frozen=True)
class RenderOptions:
    image_width: str = "640"
    images_links: bool = False
    highlight_code: bool = False
    toc_depth: int = TOC_DEPTH


class ContentRenderer:
    """Turns article Markdown into HTML.

    One ``markdown.Markdown`` instance is kept for the whole run and reset
    after every call, so renders never see state left by a previous article.
    Use it as a context manager to guarantee the final reset.
    """

    def __init__(self, options: RenderOptions | None = None):
        self.options = options or RenderOptions()
        extensions = [
            "tables",
            "fenced_code",
            "footnotes",
            "toc",
            BlogSyntaxExtension(),
            ImageExtension(width=self.options.image_width, link_images=self.options.images_links),
        ]
        extension_configs = {"toc": {"toc_depth": self.options.toc_depth}}
        if self.options.highlight_code:
            extensions.append("codehilite")
            extension_configs["codehilite"] = {"guess_lang": False, "css_class": CODE_CSS_CLASS}
        self._md = markdown.Markdown(extensions=extensions, extension_configs=extension_configs)

    def render(self, article: Article, mode: RenderMode = RenderMode.CONTENT) -> str:
        try:
            html_content = self._md.convert(article.content)
            if mode is RenderMode.TOC:
                return getattr(self._md, "toc", "")
            return html_content
        finally:
            self._md.reset()

    def close(self) -> None:
        self._md.reset()

    def __enter__(self) -> "ContentRenderer":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


def syntax_stylesheet(style: str = "default") -> str:
    return HtmlFormatter(style=style).get_style_defs(f".{CODE_CSS_CLASS}")
