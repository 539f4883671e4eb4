from __future__ import annotations

import html as html_lib
import re
import unicodedata

URL_UNSAFE_RE = re.compile(r"[^a-z0-9\-_]")
WHITESPACE_RE = re.compile(r"\s+")
ELLIPSIS = "…"


def transliterate(text: str) -> str:
    normalized = unicodedata.normalize("NFKD", text)
    return normalized.encode("ascii", "ignore").decode("ascii")


def sanitize_url(name: str) -> str:
    text = transliterate(name).lower()
    text = text.replace("/", "_").replace(" ", "_")
    return URL_UNSAFE_RE.sub("", text)


def normalize_keyword(name: str) -> tuple[str, str]:
    """Return ``(identifier, display_name)`` for a raw keyword token."""
    display = " ".join(name.split())
    return sanitize_url(display), display


def strip_spans(text: str, opening: str, closing: str) -> str:
    pos = text.find(opening)
    while pos != -1:
        end = text.find(closing, pos + 1)
        if end == -1:
            # Unterminated span, keep the rest as is.
            break
        text = text[:pos] + text[end + 1 :]
        pos = text.find(opening, pos)
    return text


def strip_markup(html_text: str) -> str:
    text = strip_spans(html_text, "<", ">")
    return strip_spans(text, "[", "]")


def summarize(html_text: str, length: int) -> str:
    """Plain-text teaser of at most ``length`` characters, plus an ellipsis.

    Tags and bracketed footnote markers are removed, entities decoded and
    whitespace collapsed. The cut happens on the last space within bounds so
    words are kept whole; a single overlong word is cut hard.
    """
    if length <= 0:
        return ""
    text = html_lib.unescape(strip_markup(html_text))
    text = text.replace(ELLIPSIS, "...")
    text = WHITESPACE_RE.sub(" ", text).replace(" .", ".").strip()
    if len(text) > length:
        cut = text.rfind(" ", 0, length + 1)
        text = text[:cut] if cut > 0 else text[:length]
    return text.strip() + ELLIPSIS
