"""Downloading updated model configurations and the model support database."""

from __future__ import annotations

import enum
import hashlib
import json
import logging
import os
import urllib.error
import urllib.request
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Callable, Iterable, Mapping

UPDATE_PARALLEL_DEFAULT = 10
USER_AGENT = "fancontrol-update"
LISTING_HEADERS = {
    "Accept": "application/vnd.github+json",
    "X-GitHub-Api-Version": "2022-11-28",
}
FILE_MODE = 0o664

Fetcher = Callable[..., bytes]

_log = logging.getLogger(__name__)


class UpdateError(Exception):
    """Downloading or storing an update failed."""


class FileState(enum.Enum):
    """Whether a remote file has to be downloaded."""

    UP_TO_DATE = 0
    NEW = 1
    CHANGED = 2


@dataclass
class RemoteFile:
    """A file listed in the remote configuration directory."""

    name: str
    sha: str
    download_url: str
    state: FileState = FileState.NEW


def git_blob_sha1(data: bytes) -> str:
    """Return the hash git gives ``data`` stored as a blob."""
    return hashlib.sha1(b"blob %d\0" % len(data) + data).hexdigest()


def file_matches_sha(path: str, sha: str) -> bool:
    """Return whether the file at ``path`` has the git blob hash ``sha``."""
    try:
        with open(path, "rb") as fh:
            data = fh.read()
    except OSError as exc:
        _log.error("Error reading file: %s: %s", path, exc.strerror)
        return False
    return git_blob_sha1(data) == sha


def determine_states(
    files: Iterable[RemoteFile], mutable_dir: str, static_dir: str
) -> list[RemoteFile]:
    """Set the state of every file, looking in ``mutable_dir`` first."""
    files = list(files)
    for file in files:
        for directory in (mutable_dir, static_dir):
            path = os.path.join(directory, file.name)
            if os.path.exists(path):
                if file_matches_sha(path, file.sha):
                    file.state = FileState.UP_TO_DATE
                else:
                    file.state = FileState.CHANGED
                break
        else:
            file.state = FileState.NEW
    return files


def summarize(files: Iterable[RemoteFile]) -> tuple[int, int]:
    """Return and log the number of new and of changed files."""
    new = changed = 0
    for file in files:
        if file.state is FileState.NEW:
            new += 1
        elif file.state is FileState.CHANGED:
            changed += 1
    _log.info("New files: %d   Files changed: %d", new, changed)
    return new, changed


def parse_directory_listing(data: bytes | str) -> list[RemoteFile]:
    """Parse a JSON directory listing into remote files.

    Entries that are not objects or lack ``name`` or ``download_url`` are
    skipped; a missing ``sha`` becomes an empty string.
    """
    try:
        root = json.loads(data)
    except ValueError as exc:
        raise UpdateError(f"Invalid JSON: {exc}") from exc
    if not isinstance(root, list):
        raise UpdateError("Received data is not a JSON array")

    files: list[RemoteFile] = []
    for item in root:
        if not isinstance(item, dict):
            _log.error("Item is not a JSON object")
            continue
        fields = {key: value for key, value in item.items() if isinstance(value, str)}
        name = fields.get("name")
        download_url = fields.get("download_url")
        sha = fields.get("sha")
        if name is None:
            _log.error("Field missing: 'name'")
            continue
        if download_url is None:
            _log.error("Field missing: 'download_url'")
            continue
        if sha is None:
            _log.warning("Field missing: 'sha'")
            sha = ""
        files.append(RemoteFile(name, sha, download_url))
    return files


def fetch(url: str, headers: Mapping[str, str] | None = None) -> bytes:
    """Download ``url`` and return its body."""
    request = urllib.request.Request(
        url, headers={"User-Agent": USER_AGENT, **(headers or {})}
    )
    try:
        with urllib.request.urlopen(request, timeout=60) as response:
            return response.read()
    except urllib.error.URLError as exc:
        raise UpdateError(f"Download failed: {url} ({exc.reason})") from exc
    except OSError as exc:
        raise UpdateError(f"Download failed: {url} ({exc})") from exc


def _write_file(path: str, data: bytes) -> None:
    fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, FILE_MODE)
    with os.fdopen(fd, "wb") as fh:
        fh.write(data)


def download_files(
    files: Iterable[RemoteFile],
    target_dir: str,
    parallel: int = UPDATE_PARALLEL_DEFAULT,
    quiet: bool = False,
    fetcher: Fetcher = fetch,
) -> None:
    """Download every file that is not up to date into ``target_dir``.

    Up to ``parallel`` downloads run at once. All files are tried; if any
    failed, ``UpdateError`` is raised afterwards.
    """
    pending = [file for file in files if file.state is not FileState.UP_TO_DATE]
    if parallel < 1 or not pending:
        return

    def download(file: RemoteFile) -> str | None:
        try:
            data = fetcher(file.download_url)
        except UpdateError as exc:
            _log.error("%s", exc)
            return str(exc)
        if not quiet:
            _log.info("Finished downloading %s", file.download_url)
        path = os.path.join(target_dir, file.name)
        try:
            _write_file(path, data)
        except OSError as exc:
            message = f"Write failed: {path}: {exc.strerror}"
            _log.error("%s", message)
            return message
        return None

    with ThreadPoolExecutor(max_workers=parallel) as pool:
        failures = [message for message in pool.map(download, pending) if message]

    if failures:
        raise UpdateError(
            "Some configuration files could not be downloaded: " + "; ".join(failures)
        )


def update_model_support(url: str, target: str, fetcher: Fetcher = fetch) -> None:
    """Download the model support database to ``target``."""
    data = fetcher(url)
    _log.info("Finished downloading %s", url)
    try:
        _write_file(target, data)
    except OSError as exc:
        raise UpdateError(f"Write failed: {target}: {exc.strerror}") from exc


def update_configs(
    listing_url: str,
    mutable_dir: str,
    static_dir: str,
    parallel: int = UPDATE_PARALLEL_DEFAULT,
    quiet: bool = False,
    fetcher: Fetcher = fetch,
) -> list[RemoteFile]:
    """Bring the configurations in ``mutable_dir`` up to date.

    Returns the remote files with their states as found before downloading.
    """
    try:
        data = fetcher(listing_url, LISTING_HEADERS)
    except UpdateError as exc:
        raise UpdateError(f"Failed to download configuration file list: {exc}") from exc
    if not quiet:
        _log.info("Finished downloading %s", listing_url)

    files = determine_states(parse_directory_listing(data), mutable_dir, static_dir)
    summarize(files)
    download_files(files, mutable_dir, parallel, quiet, fetcher)
    return files