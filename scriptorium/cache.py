from __future__ import annotations

import enum
import hashlib
import logging
import shutil
from pathlib import Path

from .models import Page

LOGGER = logging.getLogger(__name__)


class WriteStatus(enum.Enum):
    WRITTEN = "written"
    UNCHANGED = "unchanged"
    FAILED = "failed"


def hash_bytes(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


def hash_text(text: str) -> str:
    return hash_bytes(text.encode("utf-8"))


def hash_file(path: Path) -> str:
    return hash_bytes(path.read_bytes())


def list_items(root: Path, recursive: bool = False, include_dirs: bool = False) -> list[Path]:
    """Sorted listing of ``root``, hidden files excluded."""
    if not root.is_dir():
        return []
    items = []
    for path in sorted(root.iterdir()):
        if path.name.startswith("."):
            continue
        if path.is_dir():
            if include_dirs:
                items.append(path)
            if recursive:
                items.extend(list_items(path, recursive=True, include_dirs=include_dirs))
        elif path.is_file():
            items.append(path)
    return items


def remove_item(path: Path) -> bool:
    try:
        if path.is_dir():
            shutil.rmtree(path)
        elif path.exists():
            path.unlink()
        else:
            return False
    except OSError as exc:
        LOGGER.warning("Unable to remove %s: %s", path, exc)
        return False
    return True


def create_directory(path: Path, force: bool = False) -> bool:
    """Create ``path``; with ``force`` an existing directory is emptied first."""
    if force and path.exists():
        remove_item(path)
    if path.exists():
        return False
    try:
        path.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        LOGGER.warning("Unable to create directory %s: %s", path, exc)
        return False
    return True


def copy_item(src: Path, dst: Path, force: bool) -> bool:
    """Copy a file or a directory tree.

    Existing destination files are kept unless ``force`` is set. Returns False
    when anything could not be copied.
    """
    try:
        if src.is_dir():
            dst.mkdir(parents=True, exist_ok=True)
            ok = True
            for child in sorted(src.iterdir()):
                ok = copy_item(child, dst / child.name, force) and ok
            return ok
        if dst.exists() and not force:
            return True
        dst.parent.mkdir(parents=True, exist_ok=True)
        shutil.copy2(src, dst)
    except OSError as exc:
        LOGGER.warning("Unable to copy %s to %s: %s", src, dst, exc)
        return False
    return True


def write_page(page: Page, output_dir: Path, force: bool) -> WriteStatus:
    output_file = output_dir / page.location
    try:
        output_file.parent.mkdir(parents=True, exist_ok=True)
        if output_file.exists() and not force:
            if hash_text(page.html) == hash_file(output_file):
                return WriteStatus.UNCHANGED
        output_file.write_bytes(page.html.encode("utf-8"))
    except OSError as exc:
        LOGGER.warning("Unable to write %s: %s", output_file, exc)
        return WriteStatus.FAILED
    return WriteStatus.WRITTEN


def copy_page_files(page: Page, output_dir: Path, force: bool) -> int:
    """Copy the assets of a page, returns the number of failed copies."""
    if not page.files:
        return 0
    # All files of a page share the same directory.
    create_directory((output_dir / page.files[0][1]).parent, force)
    failures = 0
    for src, dst in page.files:
        if not copy_item(src, output_dir / dst, force):
            failures += 1
    return failures


def save_page(page: Page, output_dir: Path, force: bool) -> bool:
    """Write a page and its assets, True only if the page file was written."""
    status = write_page(page, output_dir, force)
    copy_page_files(page, output_dir, force)
    return status is WriteStatus.WRITTEN
