from __future__ import annotations

import argparse
import getpass
import logging
import sys
import time
from pathlib import Path
from typing import Optional, Sequence

from keyring.errors import KeyringError

from .config import DEFAULT_CONFIG_NAME, Settings, default_config, write_config
from .content import load_articles
from .generator import Generator, Mode
from .publish import PublishError, open_mirror, store_sftp_password, upload_site
from .templates import REQUIRED_TEMPLATES, TemplateError

VERSION = "1.0.0"

SETUP = "setup"
GENERATE = "generate"
UPLOAD = "upload"
TEST = "test"
PASSWORD = "password"
SCRIBE = "scribe"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="scriptorium",
        description="Static blog generator: Markdown articles in, HTML site out.",
    )
    parser.add_argument(
        "--path",
        "-p",
        default=DEFAULT_CONFIG_NAME,
        help="Path to the blog config file (TOML/YAML/JSON); its directory is the blog root.",
    )
    actions = parser.add_argument_group("actions").add_mutually_exclusive_group()
    actions.add_argument(
        "--setup",
        dest="action",
        action="store_const",
        const=SETUP,
        help="Create the config file and the articles, template, output and resources folders.",
    )
    actions.add_argument(
        "--generate",
        dest="action",
        action="store_const",
        const=GENERATE,
        help="Generate the site. Existing files are kept, index pages are rebuilt.",
    )
    actions.add_argument(
        "--upload",
        dest="action",
        action="store_const",
        const=UPLOAD,
        help="Upload the generated site to the SFTP host, or mirror it to publish_path.",
    )
    actions.add_argument(
        "--scribe",
        dest="action",
        action="store_const",
        const=SCRIBE,
        help="Generate then upload (default).",
    )
    actions.add_argument(
        "--test",
        dest="action",
        action="store_const",
        const=TEST,
        help="Print the loaded configuration, check the templates and the upload destination.",
    )
    actions.add_argument(
        "--set-password",
        dest="action",
        action="store_const",
        const=PASSWORD,
        help="Prompt for the SFTP password and store it in the system keychain.",
    )
    modifiers = parser.add_argument_group("modifiers")
    modifiers.add_argument("--index-only", "-i", action="store_true", help="Update index pages only.")
    modifiers.add_argument("--drafts-only", "-d", action="store_true", help="Process drafts only.")
    modifiers.add_argument("--resources-only", "-r", action="store_true", help="Update resources only.")
    modifiers.add_argument("--force", "-f", action="store_true", help="Regenerate/upload every file.")
    parser.add_argument("--verbose", "-v", action="store_true", help="Show debug logging.")
    parser.add_argument("--version", action="version", version=f"%(prog)s {VERSION}")
    return parser


def resolve_actions(args: argparse.Namespace) -> list[str]:
    if args.action in (None, SCRIBE):
        return [GENERATE, UPLOAD]
    return [args.action]


def resolve_mode(args: argparse.Namespace) -> Mode:
    mode = Mode.ALL
    if args.drafts_only:
        mode &= ~(Mode.ARTICLES | Mode.RESOURCES)
        mode |= Mode.DRAFTS
    if args.resources_only:
        mode &= ~(Mode.ARTICLES | Mode.DRAFTS | Mode.INDEX)
        mode |= Mode.RESOURCES
    if args.index_only:
        mode &= ~(Mode.ARTICLES | Mode.DRAFTS | Mode.RESOURCES)
        mode |= Mode.INDEX
    if args.force:
        mode |= Mode.FORCE
    return mode


def run_setup(config_path: Path) -> int:
    if config_path.exists():
        print(f"Unable to setup, config file already exists at path {config_path}.", file=sys.stderr)
        return 2
    settings = Settings.from_mapping({}, config_path.parent)
    for path in (
        settings.articles_path,
        settings.template_path,
        settings.output_path,
        settings.resources_path,
    ):
        path.mkdir(parents=True, exist_ok=True)
    write_config(config_path, default_config())
    print(
        f"You can now fill in the settings in {config_path}, then use --set-password to store "
        "the SFTP password in the system keychain. Put the template files "
        f"({', '.join(REQUIRED_TEMPLATES)}, optionally syntax.html) in {settings.template_path}."
    )
    return 0


def run_test(settings: Settings) -> int:
    print("Configuration contains:")
    print(settings.describe())
    status = 0
    missing = [name for name in REQUIRED_TEMPLATES if not (settings.template_path / name).is_file()]
    if missing:
        print(f"Missing template files: {', '.join(missing)}", file=sys.stderr)
        status = 1
    if settings.sftp_address:
        print(
            f"Attempting to connect to {settings.sftp_username}@{settings.sftp_domain}:"
            f"{settings.sftp_path}"
        )
        try:
            open_mirror(settings).close()
        except PublishError as exc:
            print(str(exc), file=sys.stderr)
            status = 1
        else:
            print("Authentication successful.")
    elif settings.publish_path is None:
        print("No sftp_address or publish_path configured, upload is disabled.")
    elif not settings.publish_path.is_dir():
        print(f"Publish path not found: {settings.publish_path}", file=sys.stderr)
        status = 1
    return status


def run_set_password(settings: Settings) -> int:
    if not settings.sftp_address:
        print("Unable to store a password, no sftp_address configured.", file=sys.stderr)
        return 4
    password = getpass.getpass(
        f"SFTP password for {settings.sftp_username}@{settings.sftp_domain}: "
    )
    try:
        store_sftp_password(settings, password)
    except KeyringError as exc:
        print(
            f"Unable to save the password to the system keychain ({exc}), "
            "fill the sftp_password field in the config file instead.",
            file=sys.stderr,
        )
        return 4
    print("Saved! You can now test the connection with --test.")
    return 0


def run_generate(settings: Settings, mode: Mode) -> int:
    try:
        generator = Generator(settings)
    except TemplateError as exc:
        print(str(exc), file=sys.stderr)
        return 1
    articles = load_articles(settings.articles_path, settings.default_author, settings.date_style)
    print(f"Loading articles... {len(articles)} found.")
    report = generator.process(articles, mode)
    print(
        f"{len(report.written)} files written, {report.unchanged} unchanged, "
        f"{len(report.failed)} failed."
    )
    if report.asset_failures or report.resource_failures:
        print(
            f"{report.asset_failures} article assets and {report.resource_failures} resources "
            "could not be copied.",
            file=sys.stderr,
        )
    return 0


def run_upload(settings: Settings, mode: Mode) -> int:
    try:
        mirror = open_mirror(settings)
    except PublishError as exc:
        print(f"Unable to upload: {exc}", file=sys.stderr)
        return 6
    print(f"Uploading {settings.output_path} to {mirror}.")
    with mirror:
        results = upload_site(mirror, settings.output_path, mode)
    for group, ok in results.items():
        print(f"Uploading {group}... {'done' if ok else 'fail'}.")
    return 0


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )
    config_path = Path(args.path).expanduser().resolve()
    actions = resolve_actions(args)
    mode = resolve_mode(args)

    if SETUP in actions:
        return run_setup(config_path)
    if not config_path.exists():
        print(f"Unable to load config file at path {config_path}.", file=sys.stderr)
        return 1
    settings = Settings.load(config_path)
    if TEST in actions:
        return run_test(settings)
    if PASSWORD in actions:
        return run_set_password(settings)

    start = time.perf_counter()
    if GENERATE in actions:
        status = run_generate(settings, mode)
        if status:
            return status
    if UPLOAD in actions:
        status = run_upload(settings, mode)
        if status:
            return status
    elapsed = time.perf_counter() - start
    print(f"Completed in {elapsed:.2f}s.")
    return 0
