from __future__ import annotations

import re
import xml.etree.ElementTree as etree

from markdown.extensions import Extension
from markdown.inlinepatterns import SimpleTagInlineProcessor
from markdown.treeprocessors import Treeprocessor
from markdown.util import AtomicString

STRIKE_RE = r"(~{2})(.+?)~{2}"
UNDERLINE_RE = r"(?<![\w_])(_)(?!_)([^_\n]+?)(?<!_)_(?![\w_])"
SUPERSCRIPT_PAREN_RE = r"(\^)\(([^)\n]+?)\)"
SUPERSCRIPT_WORD_RE = r"(\^)([^\s^()\x02\x03]+)"
QUOTE_RE = r'(")([^"\n]+?)"'
BARE_URL_RE = re.compile(
    r"(?<![\w/@])(?P<url>(?:https?://|www\.)"
    r"[^\s<>\"'\x02\x03]*[^\s<>\"'\x02\x03.,;:!?)])"
)
WIDTH_RE = re.compile(r"^\d+(?:\.\d+)?(?:px|%|em|rem|vw)?$")
UNLINKED_TAGS = ("a", "code", "pre")


def split_bare_links(text: str) -> tuple[str, list[etree.Element]]:
    """Split text into its leading part and one link per bare URL.

    Each link carries the text up to the next URL as its tail.
    """
    matches = list(BARE_URL_RE.finditer(text))
    if not matches:
        return text, []
    links = []
    for index, match in enumerate(matches):
        url = match.group("url")
        link = etree.Element("a")
        link.set("href", url if url.startswith("http") else f"http://{url}")
        link.text = AtomicString(url)
        end = matches[index + 1].start() if index + 1 < len(matches) else len(text)
        link.tail = text[match.end():end] or None
        links.append(link)
    return text[: matches[0].start()], links


class BareLinkTreeprocessor(Treeprocessor):
    """Link bare URLs once inline markup is built, leaving links and code alone."""

    def run(self, root):
        self.link_element(root)
        return None

    def link_element(self, element) -> None:
        for child in list(element):
            if isinstance(child.tag, str) and child.tag not in UNLINKED_TAGS:
                self.link_element(child)
            if not child.tail:
                continue
            head, links = split_bare_links(child.tail)
            if links:
                child.tail = head or None
                position = list(element).index(child) + 1
                for offset, link in enumerate(links):
                    element.insert(position + offset, link)
        if element.text:
            head, links = split_bare_links(element.text)
            if links:
                element.text = head or None
                for offset, link in enumerate(links):
                    element.insert(offset, link)


class ImageTreeprocessor(Treeprocessor):
    """Give every image a width and optionally link it to its file.

    A title that looks like a size (``![alt](pic.png "320")``) is used as the
    width of that image instead of the default one.
    """

    def __init__(self, md, width: str, link_images: bool):
        super().__init__(md)
        self.width = width
        self.link_images = link_images

    def run(self, root):
        for parent in list(root.iter()):
            for index, child in enumerate(list(parent)):
                if child.tag != "img":
                    continue
                title = (child.get("title") or "").strip()
                if title and WIDTH_RE.match(title):
                    child.set("width", title)
                    del child.attrib["title"]
                elif self.width:
                    child.set("width", self.width)
                if self.link_images and parent.tag != "a":
                    link = etree.Element("a")
                    link.set("href", child.get("src", ""))
                    link.tail = child.tail
                    child.tail = None
                    link.append(child)
                    parent[index] = link
        return None


class BlogSyntaxExtension(Extension):
    """Inline syntax on top of Python-Markdown: ``~~del~~``, ``_u_``,
    ``^sup``, ``"q"`` and bare URLs."""

    def extendMarkdown(self, md):
        md.inlinePatterns.register(SimpleTagInlineProcessor(STRIKE_RE, "del"), "strikethrough", 65)
        md.inlinePatterns.register(SimpleTagInlineProcessor(UNDERLINE_RE, "u"), "underline", 55)
        md.inlinePatterns.register(
            SimpleTagInlineProcessor(SUPERSCRIPT_PAREN_RE, "sup"), "superscript_paren", 42
        )
        md.inlinePatterns.register(
            SimpleTagInlineProcessor(SUPERSCRIPT_WORD_RE, "sup"), "superscript", 41
        )
        md.inlinePatterns.register(SimpleTagInlineProcessor(QUOTE_RE, "q"), "quote", 40)
        # Runs after the inline patterns (priority 20).
        md.treeprocessors.register(BareLinkTreeprocessor(md), "bare_link", 17)


class ImageExtension(Extension):
    def __init__(self, width: str = "", link_images: bool = False, **kwargs):
        super().__init__(**kwargs)
        self.width = width
        self.link_images = link_images

    def extendMarkdown(self, md):
        md.treeprocessors.register(
            ImageTreeprocessor(md, self.width, self.link_images), "image_size", 15
        )
