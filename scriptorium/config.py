from __future__ import annotations

import json
import sys
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Optional

from .render import RenderOptions
from .utils import parse_bool, parse_int, parse_sftp_address

try:
    import tomllib as toml
except ImportError:
    try:
        import tomli as toml
    except ImportError:  # pragma: no cover - optional dependency
        toml = None

try:
    import yaml
except ImportError:  # pragma: no cover - optional dependency
    yaml = None

DEFAULT_CONFIG_NAME = "config.toml"
PATH_KEYS = ("articles_path", "template_path", "output_path", "resources_path", "publish_path")
BOOL_KEYS = ("images_links", "calendar_pages", "category_pages", "highlight_code")
INT_KEYS = ("rss_count", "summary_length", "sftp_port")
SECRET_KEYS = ("sftp_password",)


def load_config(path: Path) -> dict:
    if not path.exists():
        return {}
    suffix = path.suffix.lower()
    text = path.read_text(encoding="utf-8")
    if suffix == ".toml":
        if toml is None:
            print("TOML config requires tomllib (Python 3.11+) or tomli.", file=sys.stderr)
            sys.exit(1)
        try:
            data = toml.loads(text)
        except Exception as exc:  # pragma: no cover - depends on parser
            print(f"Invalid TOML in config file {path}: {exc}", file=sys.stderr)
            sys.exit(1)
        if not isinstance(data, dict):
            print(f"TOML config must be a mapping: {path}", file=sys.stderr)
            sys.exit(1)
        return data
    if suffix in {".yml", ".yaml"}:
        if yaml is None:
            print("YAML config requires PyYAML.", file=sys.stderr)
            sys.exit(1)
        try:
            data = yaml.safe_load(text)
        except Exception as exc:  # pragma: no cover - depends on parser
            print(f"Invalid YAML in config file {path}: {exc}", file=sys.stderr)
            sys.exit(1)
        if data is None:
            return {}
        if not isinstance(data, dict):
            print(f"YAML config must be a mapping: {path}", file=sys.stderr)
            sys.exit(1)
        return data
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        print(f"Invalid JSON in config file {path}: {exc}", file=sys.stderr)
        sys.exit(1)
    if not isinstance(data, dict):
        print(f"JSON config must be a mapping: {path}", file=sys.stderr)
        sys.exit(1)
    return data


@dataclass
class Settings:
    """Everything a generation run depends on.

    Paths given relative in a config file are resolved against the directory
    holding that file.
    """

    articles_path: Path = Path("articles")
    template_path: Path = Path("template")
    output_path: Path = Path("output")
    resources_path: Path = Path("resources")
    publish_path: Optional[Path] = None
    sftp_address: str = ""
    sftp_username: str = ""
    sftp_port: int = 22
    sftp_password: str = ""
    blog_title: str = "A new blog"
    default_author: str = "John Appleseed"
    date_style: str = "%m/%d/%Y"
    image_width: str = "640"
    images_links: bool = False
    site_root: str = ""
    rss_count: int = 10
    summary_length: int = 400
    calendar_pages: bool = False
    category_pages: bool = True
    highlight_code: bool = False
    syntax_style: str = "default"

    @classmethod
    def from_mapping(cls, data: dict, root: Path) -> "Settings":
        values = {}
        known = {item.name for item in fields(cls)}
        for key, value in data.items():
            if key not in known or value is None:
                continue
            if key in PATH_KEYS:
                text = str(value).strip()
                if not text:
                    continue
                path = Path(text).expanduser()
                values[key] = path if path.is_absolute() else root / path
            elif key in BOOL_KEYS:
                values[key] = parse_bool(value)
            elif key in INT_KEYS:
                values[key] = max(0, parse_int(value, getattr(cls, key)))
            else:
                values[key] = str(value)
        for key in PATH_KEYS:
            if key not in values and key != "publish_path":
                values[key] = root / getattr(cls, key)
        return cls(**values)

    @classmethod
    def load(cls, config_path: Path) -> "Settings":
        config_path = config_path.resolve()
        return cls.from_mapping(load_config(config_path), config_path.parent)

    @property
    def sftp_domain(self) -> str:
        return parse_sftp_address(self.sftp_address)[0]

    @property
    def sftp_path(self) -> str:
        return parse_sftp_address(self.sftp_address)[1]

    def render_options(self) -> RenderOptions:
        return RenderOptions(
            image_width=self.image_width,
            images_links=self.images_links,
            highlight_code=self.highlight_code,
        )

    def to_dict(self) -> dict:
        data = {}
        for item in fields(self):
            value = getattr(self, item.name)
            if isinstance(value, Path):
                value = value.as_posix()
            elif value is None:
                value = ""
            data[item.name] = value
        return data

    def describe(self) -> str:
        lines = []
        for key, value in self.to_dict().items():
            if key in SECRET_KEYS and value:
                value = "********"
            lines.append(f"{key}: {value}")
        return "\n".join(lines)


def _toml_value(value: object) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int):
        return str(value)
    return json.dumps(str(value), ensure_ascii=False)


def write_config(path: Path, data: dict) -> None:
    suffix = path.suffix.lower()
    if suffix == ".toml":
        text = "\n".join(f"{key} = {_toml_value(value)}" for key, value in data.items()) + "\n"
    elif suffix in {".yml", ".yaml"}:
        if yaml is None:
            print("YAML config requires PyYAML.", file=sys.stderr)
            sys.exit(1)
        text = yaml.safe_dump(data, sort_keys=False, allow_unicode=True)
    else:
        text = json.dumps(data, indent=2, ensure_ascii=False) + "\n"
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")


def default_config() -> dict:
    """Config written by ``--setup``, paths relative to the config file."""
    data = Settings().to_dict()
    data["publish_path"] = ""
    return data
