from __future__ import annotations

import posixpath
import stat
from pathlib import Path
from unittest.mock import MagicMock, patch

import paramiko
import pytest
from keyring.errors import KeyringError

from scriptorium import publish as publish_module
from scriptorium.config import Settings
from scriptorium.generator import Mode
from scriptorium.publish import (
    LocalMirror,
    PublishError,
    SFTPMirror,
    connect_sftp,
    is_index_item,
    open_mirror,
    publish,
    upload_site,
)


def write(path: Path, text: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")


@pytest.fixture
def site(tmp_path: Path) -> Settings:
    output = tmp_path / "output"
    write(output / "index.html", "index")
    write(output / "feed.xml", "feed")
    write(output / "categories" / "go.html", "go")
    write(output / "2024" / "index.html", "calendar")
    write(output / "articles" / "2024" / "03" / "a.html", "article")
    write(output / "drafts" / "d.html", "draft")
    write(output / "style.css", "css")
    return Settings.from_mapping({"publish_path": "remote"}, tmp_path)


def test_is_index_item(tmp_path: Path) -> None:
    (tmp_path / "categories").mkdir()
    (tmp_path / "2024").mkdir()
    (tmp_path / "articles").mkdir()
    assert is_index_item(tmp_path / "categories")
    assert is_index_item(tmp_path / "2024")
    assert is_index_item(tmp_path / "sitemap.xml")
    assert not is_index_item(tmp_path / "articles")
    assert not is_index_item(tmp_path / "style.css")


def test_publish_everything(site: Settings) -> None:
    results = publish(site, Mode.ALL)
    remote = site.publish_path
    assert results == {"index": True, "articles": True, "drafts": True, "resources": True}
    for name in (
        "index.html",
        "feed.xml",
        "categories/go.html",
        "2024/index.html",
        "articles/2024/03/a.html",
        "drafts/d.html",
        "style.css",
    ):
        assert (remote / name).exists(), name


def test_publish_resources_only(site: Settings) -> None:
    results = publish(site, Mode.RESOURCES)
    assert results == {"resources": True}
    assert (site.publish_path / "style.css").exists()
    assert not (site.publish_path / "index.html").exists()
    assert not (site.publish_path / "articles").exists()


def test_publish_skips_identical_files(site: Settings, monkeypatch) -> None:
    publish(site, Mode.ALL)
    (site.output_path / "articles" / "2024" / "03" / "a.html").write_text("edited", encoding="utf-8")
    copied = []
    real_copy = publish_module.shutil.copy2

    def record(src, dst):
        copied.append(Path(dst).relative_to(site.publish_path).as_posix())
        return real_copy(src, dst)

    monkeypatch.setattr(publish_module.shutil, "copy2", record)
    publish(site, Mode.ALL)

    assert "articles/2024/03/a.html" in copied
    assert "style.css" not in copied
    assert "drafts/d.html" not in copied
    # Index pages are always uploaded.
    assert "index.html" in copied
    assert "categories/go.html" in copied
    assert (site.publish_path / "articles/2024/03/a.html").read_text(encoding="utf-8") == "edited"


def test_publish_force(site: Settings, monkeypatch) -> None:
    publish(site, Mode.ALL)
    copied = []
    monkeypatch.setattr(publish_module.shutil, "copy2", lambda src, dst: copied.append(Path(dst).name))
    publish(site, Mode.ALL | Mode.FORCE)
    assert {"a.html", "d.html", "style.css", "index.html"} <= set(copied)


def test_publish_requires_destination(tmp_path: Path) -> None:
    with pytest.raises(PublishError):
        publish(Settings.from_mapping({}, tmp_path), Mode.ALL)


def test_open_mirror_prefers_sftp(tmp_path: Path) -> None:
    local = Settings.from_mapping({"publish_path": "remote"}, tmp_path)
    assert isinstance(open_mirror(local), LocalMirror)

    remote = Settings.from_mapping({"publish_path": "remote", "sftp_address": "example.com:/www"}, tmp_path)
    with patch("scriptorium.publish.connect_sftp") as connect:
        assert open_mirror(remote) is connect.return_value
    connect.assert_called_once_with(remote)


class RemoteTree:
    """Remote file system answering a mocked SFTP client."""

    def __init__(self, root: str = "/www"):
        self.files: dict[str, bytes] = {}
        self.mtimes: dict[str, int] = {}
        self.dirs = {root}
        self.uploaded: list[str] = []

    def attributes(self, path: str) -> paramiko.SFTPAttributes:
        attrs = paramiko.SFTPAttributes()
        attrs.filename = posixpath.basename(path)
        if path in self.dirs:
            attrs.st_mode = stat.S_IFDIR | 0o755
            attrs.st_size = 0
        else:
            attrs.st_mode = stat.S_IFREG | 0o644
            attrs.st_size = len(self.files[path])
        attrs.st_mtime = self.mtimes.get(path, 0)
        return attrs

    def stat(self, path: str) -> paramiko.SFTPAttributes:
        if path not in self.dirs and path not in self.files:
            raise FileNotFoundError(path)
        return self.attributes(path)

    def mkdir(self, path: str, mode: int = 0o777) -> None:
        assert posixpath.dirname(path) in self.dirs
        self.dirs.add(path)

    def put(self, localpath: str, remotepath: str, *args, **kwargs) -> None:
        assert posixpath.dirname(remotepath) in self.dirs
        self.files[remotepath] = Path(localpath).read_bytes()
        self.mtimes[remotepath] = 0
        self.uploaded.append(remotepath)

    def utime(self, path: str, times) -> None:
        self.mtimes[path] = times[1]

    def listdir_attr(self, path: str = ".") -> list[paramiko.SFTPAttributes]:
        children = [item for item in [*self.dirs, *self.files] if posixpath.dirname(item) == path]
        return [self.attributes(item) for item in sorted(children)]

    def remove(self, path: str) -> None:
        del self.files[path]
        self.mtimes.pop(path, None)

    def rmdir(self, path: str) -> None:
        assert not self.listdir_attr(path)
        self.dirs.remove(path)

    def client(self) -> MagicMock:
        sftp = MagicMock(spec=paramiko.SFTPClient)
        for name in ("stat", "mkdir", "put", "utime", "listdir_attr", "remove", "rmdir"):
            getattr(sftp, name).side_effect = getattr(self, name)
        return sftp


@pytest.fixture
def remote() -> RemoteTree:
    return RemoteTree()


def test_sftp_upload_everything(site: Settings, remote: RemoteTree) -> None:
    results = upload_site(SFTPMirror(remote.client(), "/www"), site.output_path, Mode.ALL)
    assert results == {"index": True, "articles": True, "drafts": True, "resources": True}
    for name in (
        "index.html",
        "feed.xml",
        "categories/go.html",
        "2024/index.html",
        "articles/2024/03/a.html",
        "drafts/d.html",
        "style.css",
    ):
        assert f"/www/{name}" in remote.files, name
    assert remote.files["/www/articles/2024/03/a.html"] == b"article"
    assert {"/www/articles", "/www/articles/2024", "/www/articles/2024/03"} <= remote.dirs


def test_sftp_upload_skips_current_files(site: Settings, remote: RemoteTree) -> None:
    mirror = SFTPMirror(remote.client(), "/www")
    upload_site(mirror, site.output_path, Mode.ALL)
    remote.uploaded.clear()
    (site.output_path / "articles" / "2024" / "03" / "a.html").write_text("edited", encoding="utf-8")

    results = upload_site(mirror, site.output_path, Mode.ALL)

    assert all(results.values())
    assert "/www/articles/2024/03/a.html" in remote.uploaded
    assert "/www/style.css" not in remote.uploaded
    assert "/www/drafts/d.html" not in remote.uploaded
    # Index pages are always uploaded.
    assert "/www/index.html" in remote.uploaded
    assert "/www/categories/go.html" in remote.uploaded
    assert remote.files["/www/articles/2024/03/a.html"] == b"edited"


def test_sftp_force_replaces_remote_trees(site: Settings, remote: RemoteTree) -> None:
    mirror = SFTPMirror(remote.client(), "/www")
    upload_site(mirror, site.output_path, Mode.ALL)
    remote.files["/www/articles/stale.html"] = b"old"
    remote.uploaded.clear()

    upload_site(mirror, site.output_path, Mode.ALL | Mode.FORCE)

    assert "/www/articles/stale.html" not in remote.files
    assert {"/www/articles/2024/03/a.html", "/www/drafts/d.html", "/www/style.css"} <= set(remote.uploaded)


def test_sftp_resources_only(site: Settings, remote: RemoteTree) -> None:
    results = upload_site(SFTPMirror(remote.client(), "/www"), site.output_path, Mode.RESOURCES)
    assert results == {"resources": True}
    assert remote.uploaded == ["/www/style.css"]


def test_sftp_upload_failure_is_reported(site: Settings, remote: RemoteTree) -> None:
    sftp = remote.client()

    def refuse_articles(localpath, remotepath, *args, **kwargs):
        if remotepath.startswith("/www/articles/"):
            raise PermissionError(remotepath)
        return remote.put(localpath, remotepath)

    sftp.put.side_effect = refuse_articles
    results = upload_site(SFTPMirror(sftp, "/www"), site.output_path, Mode.ALL)
    assert results == {"index": True, "articles": False, "drafts": True, "resources": True}


def sftp_settings(tmp_path: Path, **extra) -> Settings:
    data = {"sftp_address": "sftp://example.com:/var/www", "sftp_username": "jane", "sftp_port": "2222"}
    data.update(extra)
    return Settings.from_mapping(data, tmp_path)


@patch("scriptorium.publish.keyring.get_password", return_value="secret")
@patch("scriptorium.publish.paramiko.SSHClient")
def test_connect_sftp_reads_keychain(mock_client, mock_get_password, tmp_path: Path) -> None:
    ssh = mock_client.return_value

    mirror = connect_sftp(sftp_settings(tmp_path))

    mock_get_password.assert_called_once_with("example.com", "jane")
    ssh.load_system_host_keys.assert_called_once_with()
    ssh.connect.assert_called_once_with("example.com", port=2222, username="jane", password="secret")
    assert mirror.root == "/var/www"
    assert mirror.sftp is ssh.open_sftp.return_value
    mirror.close()
    ssh.open_sftp.return_value.close.assert_called_once_with()
    ssh.close.assert_called_once_with()


@patch("scriptorium.publish.keyring.get_password")
@patch("scriptorium.publish.paramiko.SSHClient")
def test_connect_sftp_prefers_configured_password(mock_client, mock_get_password, tmp_path: Path) -> None:
    connect_sftp(sftp_settings(tmp_path, sftp_password="inline"))
    mock_get_password.assert_not_called()
    assert mock_client.return_value.connect.call_args.kwargs["password"] == "inline"


@patch("scriptorium.publish.keyring.get_password", side_effect=KeyringError("no backend"))
@patch("scriptorium.publish.paramiko.SSHClient")
def test_connect_sftp_without_keychain(mock_client, mock_get_password, tmp_path: Path) -> None:
    connect_sftp(sftp_settings(tmp_path))
    assert mock_client.return_value.connect.call_args.kwargs["password"] is None


@patch("scriptorium.publish.keyring.get_password", return_value="wrong")
@patch("scriptorium.publish.paramiko.SSHClient")
def test_connect_sftp_failure(mock_client, mock_get_password, tmp_path: Path) -> None:
    ssh = mock_client.return_value
    ssh.connect.side_effect = paramiko.AuthenticationException("denied")
    with pytest.raises(PublishError, match="jane@example.com"):
        connect_sftp(sftp_settings(tmp_path))
    ssh.close.assert_called_once_with()


def test_publish_closes_sftp_session(site: Settings, remote: RemoteTree, tmp_path: Path) -> None:
    sftp = remote.client()
    ssh = MagicMock(spec=paramiko.SSHClient)
    settings = sftp_settings(tmp_path)
    with patch("scriptorium.publish.connect_sftp", return_value=SFTPMirror(sftp, "/www", ssh)):
        results = publish(settings, Mode.INDEX)
    assert results == {"index": True}
    assert "/www/index.html" in remote.files
    sftp.close.assert_called_once_with()
    ssh.close.assert_called_once_with()
