from __future__ import annotations

import logging
import posixpath
import shutil
import stat
from pathlib import Path
from typing import Optional

import keyring
import paramiko
from keyring.errors import KeyringError

from .cache import hash_file, list_items
from .config import Settings
from .generator import Mode

LOGGER = logging.getLogger(__name__)

INDEX_FILES = ("index.html", "index-drafts.html", "feed.xml", "sitemap.xml")
INDEX_DIRS = ("categories",)
CONTENT_DIRS = ("articles", "drafts")


class PublishError(Exception):
    pass


def is_index_item(path: Path) -> bool:
    if path.is_dir():
        # Calendar pages live in one directory per year.
        return path.name in INDEX_DIRS or path.name.isdigit()
    return path.name in INDEX_FILES


def mirror_item(src: Path, dst: Path, force: bool) -> bool:
    """Copy ``src`` over ``dst``, skipping files already identical there."""
    try:
        if src.is_dir():
            dst.mkdir(parents=True, exist_ok=True)
            ok = True
            for child in list_items(src, include_dirs=True):
                ok = mirror_item(child, dst / child.name, force) and ok
            return ok
        if not force and dst.is_file() and hash_file(dst) == hash_file(src):
            return True
        dst.parent.mkdir(parents=True, exist_ok=True)
        shutil.copy2(src, dst)
    except OSError as exc:
        LOGGER.warning("Unable to upload %s to %s: %s", src, dst, exc)
        return False
    return True


class LocalMirror:
    """Upload destination that is a directory on this machine."""

    def __init__(self, root: Path):
        self.root = root

    def __str__(self) -> str:
        return str(self.root)

    def __enter__(self) -> "LocalMirror":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def close(self) -> None:
        pass

    def mirror_item(self, src: Path, name: str, force: bool) -> bool:
        return mirror_item(src, self.root / name, force)


class SFTPMirror:
    """Upload destination on a remote host, reached through an SFTP session.

    ``force`` removes the remote copy before uploading. Otherwise a remote
    file is kept when it has the local size and is at least as recent.
    """

    def __init__(self, sftp: paramiko.SFTPClient, root: str, client: Optional[paramiko.SSHClient] = None):
        self.sftp = sftp
        self.root = root
        self.client = client

    def __str__(self) -> str:
        return self.root

    def __enter__(self) -> "SFTPMirror":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def close(self) -> None:
        self.sftp.close()
        if self.client is not None:
            self.client.close()

    def stat(self, path: str) -> Optional[paramiko.SFTPAttributes]:
        try:
            return self.sftp.stat(path)
        except FileNotFoundError:
            return None

    def remove(self, path: str, attrs: paramiko.SFTPAttributes) -> None:
        if stat.S_ISDIR(attrs.st_mode):
            for entry in self.sftp.listdir_attr(path):
                self.remove(posixpath.join(path, entry.filename), entry)
            self.sftp.rmdir(path)
        else:
            self.sftp.remove(path)

    def is_current(self, src: Path, attrs: paramiko.SFTPAttributes) -> bool:
        if stat.S_ISDIR(attrs.st_mode):
            return False
        local = src.stat()
        return attrs.st_size == local.st_size and (attrs.st_mtime or 0) >= int(local.st_mtime)

    def copy_item(self, src: Path, dst: str, force: bool) -> bool:
        if src.name.startswith("."):
            return True
        try:
            attrs = self.stat(dst)
            if attrs is not None and force:
                self.remove(dst, attrs)
                attrs = None
            if src.is_dir():
                if attrs is None:
                    self.sftp.mkdir(dst)
                ok = True
                for child in list_items(src, include_dirs=True):
                    ok = self.copy_item(child, posixpath.join(dst, child.name), force) and ok
                return ok
            if attrs is not None and self.is_current(src, attrs):
                return True
            self.sftp.put(str(src), dst)
            local = src.stat()
            self.sftp.utime(dst, (int(local.st_atime), int(local.st_mtime)))
        except (OSError, paramiko.SSHException) as exc:
            LOGGER.warning("Unable to upload %s to %s: %s", src, dst, exc)
            return False
        return True

    def mirror_item(self, src: Path, name: str, force: bool) -> bool:
        return self.copy_item(src, posixpath.join(self.root, name), force)


def sftp_password(settings: Settings) -> Optional[str]:
    """Password from the config file, else from the system keychain."""
    if settings.sftp_password:
        return settings.sftp_password
    try:
        return keyring.get_password(settings.sftp_domain, settings.sftp_username)
    except KeyringError as exc:
        LOGGER.warning("Unable to read the SFTP password from the keychain: %s", exc)
        return None


def store_sftp_password(settings: Settings, password: str) -> None:
    keyring.set_password(settings.sftp_domain, settings.sftp_username, password)


def connect_sftp(settings: Settings) -> SFTPMirror:
    """Open an SFTP session; the host must already be in known_hosts."""
    client = paramiko.SSHClient()
    client.load_system_host_keys()
    try:
        client.connect(
            settings.sftp_domain,
            port=settings.sftp_port,
            username=settings.sftp_username or None,
            password=sftp_password(settings),
        )
        sftp = client.open_sftp()
    except (paramiko.SSHException, OSError) as exc:
        client.close()
        raise PublishError(
            f"Unable to connect to {settings.sftp_username}@{settings.sftp_domain}: {exc}"
        ) from exc
    return SFTPMirror(sftp, settings.sftp_path, client)


def open_mirror(settings: Settings):
    """The upload destination: the SFTP host when one is set, else ``publish_path``."""
    if settings.sftp_address:
        return connect_sftp(settings)
    if settings.publish_path is not None:
        return LocalMirror(settings.publish_path)
    raise PublishError("No upload destination configured (sftp_address or publish_path).")


def upload_site(mirror, src: Path, mode: Mode) -> dict[str, bool]:
    """Upload the generated site in ``src`` to ``mirror``.

    Returns the success of each uploaded group. Index pages are always
    forced.
    """
    force = bool(mode & Mode.FORCE)
    items = list_items(src, include_dirs=True)
    results: dict[str, bool] = {}

    if mode & Mode.INDEX:
        LOGGER.info("Uploading index pages.")
        results["index"] = all(
            [mirror.mirror_item(item, item.name, True) for item in items if is_index_item(item)]
        )
    for group, flag in (("articles", Mode.ARTICLES), ("drafts", Mode.DRAFTS)):
        if not mode & flag:
            continue
        LOGGER.info("Uploading %s pages.", group[:-1])
        if (src / group).is_dir():
            results[group] = mirror.mirror_item(src / group, group, force)
        else:
            LOGGER.info("Nothing to upload in %s.", src / group)
            results[group] = True
    if mode & Mode.RESOURCES:
        LOGGER.info("Uploading resources.")
        results["resources"] = all(
            [
                mirror.mirror_item(item, item.name, force)
                for item in items
                if not is_index_item(item) and item.name not in CONTENT_DIRS
            ]
        )
    return results


def publish(settings: Settings, mode: Mode) -> dict[str, bool]:
    with open_mirror(settings) as mirror:
        return upload_site(mirror, settings.output_path, mode)
