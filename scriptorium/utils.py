from __future__ import annotations

import datetime as dt

RFC822_FMT = "%a, %d %b %Y %H:%M:%S %z"


def parse_bool(value: object) -> bool:
    if isinstance(value, bool):
        return value
    if value is None:
        return False
    if isinstance(value, (int, float)):
        return value != 0
    if isinstance(value, str):
        return value.strip().lower() in {"1", "true", "yes", "y", "on"}
    return False


def parse_int(value: object, default: int) -> int:
    if value is None:
        return default
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return value
    try:
        return int(str(value).strip())
    except ValueError:
        return default


def site_url(site_root: str) -> str:
    """Absolute URL of the site root, always ending with a slash."""
    root = (site_root or "").strip().rstrip("/")
    if root and "://" not in root:
        root = f"http://{root}"
    return f"{root}/"


def join_url(base: str, path: str) -> str:
    base = base.rstrip("/")
    path = path.lstrip("/")
    if not path:
        return f"{base}/"
    return f"{base}/{path}"


def rfc822_date(value: dt.datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=dt.timezone.utc)
    return value.strftime(RFC822_FMT)


def publication_datetime(value: dt.date) -> dt.datetime:
    # Articles carry a day only; they are considered published at 10:00 UTC.
    return dt.datetime.combine(value, dt.time(10, 0), tzinfo=dt.timezone.utc)


def parse_sftp_address(address: str) -> tuple[str, str]:
    """Split ``host:/remote/dir`` (or ``host/remote/dir``) into host and directory."""
    text = (address or "").strip()
    for scheme in ("sftp://", "ssh://", "ftp://"):
        text = text.replace(scheme, "")
    if ":" in text:
        domain, _, directory = text.partition(":")
        return domain, directory
    if "/" in text:
        index = text.index("/")
        return text[:index], text[index:]
    return text, "/"
