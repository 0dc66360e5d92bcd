"""Retrieval strategies: materialize a descriptor's files at a destination.

Each strategy writes to the provisional destination it is given and returns
the path it actually wrote. Placement, reclassification and scope are the
installer's business. No strategy overwrites an existing path, and each one
removes whatever it partially wrote before re-raising.
"""

import asyncio
import logging
import shutil
import tempfile
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from pathlib import Path, PurePosixPath

from skill_courier.core.fetcher import ContentFetcher
from skill_courier.errors import AlreadyExists, EmptyGist, GitError, PathNotFound, UnexpectedContent
from skill_courier.models import ArtifactDescriptor, RetrievalKind

logger = logging.getLogger("skill-courier.strategies")

# Downloads ship as markdown unless told otherwise, even when the true
# content type differs (a JSON config still lands as .md).
DEFAULT_EXTENSION = ".md"
MIN_CONTENT_BYTES = 4
_HTML_MARKERS = (b"<!doctype", b"<html")
_VCS_DIRS = (".git",)

GIST_API_URL = "https://api.github.com/gists/{gist_id}"


@dataclass(frozen=True)
class Retrieved:
    path: Path
    commit_sha: str | None = None


Strategy = Callable[..., Awaitable[Retrieved]]


def _ensure_absent(path: Path) -> None:
    if path.exists() or path.is_symlink():
        raise AlreadyExists(f"{path} already exists")


def remove_path(path: Path) -> None:
    """Delete a file, symlink or directory tree if present."""
    if path.is_dir() and not path.is_symlink():
        shutil.rmtree(path, ignore_errors=True)
    else:
        path.unlink(missing_ok=True)


def with_default_extension(path: Path) -> Path:
    return path if path.suffix else path.with_name(path.name + DEFAULT_EXTENSION)


def _check_content(body: bytes, url: str) -> None:
    if len(body) < MIN_CONTENT_BYTES:
        raise UnexpectedContent(f"Content from {url} is too short ({len(body)} bytes)")
    head = body.lstrip()[:16].lower()
    if head.startswith(_HTML_MARKERS):
        raise UnexpectedContent(f"Received HTML instead of raw content from {url}")


# ─── File / raw ────────────────────────────────────────────────────────────


async def retrieve_file(
    descriptor: ArtifactDescriptor, destination: Path, *, fetcher: ContentFetcher, **_
) -> Retrieved:
    """Download a single raw file to destination (".md" appended if extensionless)."""
    url = descriptor.raw_content_url
    logger.info("Downloading file from %s", url)
    body = await fetcher.get_bytes(url)
    _check_content(body, url)

    final_path = with_default_extension(destination)
    _ensure_absent(final_path)
    final_path.parent.mkdir(parents=True, exist_ok=True)
    final_path.write_bytes(body)
    logger.info("Saved to %s", final_path)
    return Retrieved(final_path)


# ─── Folder / repo root (git clone) ─────────────────────────────────────────


def locate_sub_path(clone_dir: Path, sub_path: str) -> Path:
    """Find sub_path inside a clone.

    Exact match first. Otherwise fall back to a best-effort case-insensitive
    substring match against top-level entries, so a repo that renamed
    "pdf-tools" to "skills-pdf-tools" still resolves.
    """
    if not sub_path:
        return clone_dir

    root = clone_dir.resolve()
    candidate = (clone_dir / PurePosixPath(sub_path)).resolve()
    if candidate != root and root not in candidate.parents:
        raise PathNotFound(f"Path {sub_path} escapes the repository")
    if candidate.exists():
        return clone_dir / PurePosixPath(sub_path)

    entries = sorted(p.name for p in clone_dir.iterdir() if p.name not in _VCS_DIRS)
    wanted = sub_path.strip("/").lower()
    for entry in entries:
        lower = entry.lower()
        if lower in wanted or wanted in lower:
            logger.warning("Path %s not found, using similar: %s", sub_path, entry)
            return clone_dir / entry

    raise PathNotFound(f"Path {sub_path} not found in repo. Available: {', '.join(entries)}")


def copy_artifact(source: Path, destination: Path) -> Path:
    """Copy a directory (without VCS metadata) or a file; never overwrites."""
    if source.is_dir():
        target = destination
    else:
        target = destination if destination.suffix else destination.with_name(destination.name + source.suffix)
    _ensure_absent(target)
    target.parent.mkdir(parents=True, exist_ok=True)
    try:
        if source.is_dir():
            shutil.copytree(source, target, ignore=shutil.ignore_patterns(*_VCS_DIRS), symlinks=True)
        else:
            shutil.copy2(source, target)
    except OSError:
        remove_path(target)
        raise
    return target


async def retrieve_folder(
    descriptor: ArtifactDescriptor, destination: Path, *, git, **_
) -> Retrieved:
    """Shallow-clone the repo to a scratch dir and copy the requested path out."""
    temp_dir = Path(tempfile.mkdtemp(prefix="skill-courier-"))
    clone_dir = temp_dir / "repo"
    repo_url = descriptor.repository_url
    branch = descriptor.branch or None

    try:
        try:
            await git.clone(repo_url, clone_dir, branch=branch)
        except GitError as e:
            if not branch:
                raise
            logger.warning("Branch clone failed (%s), trying default branch", e)
            shutil.rmtree(clone_dir, ignore_errors=True)
            await git.clone(repo_url, clone_dir)

        source = locate_sub_path(clone_dir, descriptor.sub_path)
        commit_sha = await git.head_commit(clone_dir)
        written = await asyncio.to_thread(copy_artifact, source, destination)
        logger.info("Copied %s to %s", descriptor.sub_path or ".", written)
        return Retrieved(written, commit_sha=commit_sha)

    finally:
        shutil.rmtree(temp_dir, ignore_errors=True)


# ─── Gist ──────────────────────────────────────────────────────────────────


async def _gist_file_content(entry: dict, fetcher: ContentFetcher) -> str:
    content = entry.get("content")
    raw_url = entry.get("raw_url")
    if (content is None or entry.get("truncated")) and raw_url:
        return await fetcher.get_text(raw_url)
    if content is None:
        raise UnexpectedContent(f"Gist file {entry.get('filename', '?')} has no content or raw_url")
    return content


async def retrieve_gist(
    descriptor: ArtifactDescriptor, destination: Path, *, fetcher: ContentFetcher, **_
) -> Retrieved:
    """Single-file gists land as one file, multi-file gists as a directory."""
    url = GIST_API_URL.format(gist_id=descriptor.gist_id)
    logger.info("Fetching gist from %s", url)
    data = await fetcher.get_json(url)

    files = list((data.get("files") or {}).values()) if isinstance(data, dict) else []
    if not files:
        raise EmptyGist(f"Gist {descriptor.gist_id} has no files")

    if len(files) == 1:
        entry = files[0]
        content = await _gist_file_content(entry, fetcher)
        suffix = PurePosixPath(entry.get("filename", "")).suffix or DEFAULT_EXTENSION
        final_path = destination.with_name(destination.name + suffix)
        _ensure_absent(final_path)
        final_path.parent.mkdir(parents=True, exist_ok=True)
        final_path.write_text(content, encoding="utf-8")
        return Retrieved(final_path)

    _ensure_absent(destination)
    destination.mkdir(parents=True)
    try:
        for entry in files:
            filename = PurePosixPath(entry.get("filename", "")).name
            if not filename:
                continue
            content = await _gist_file_content(entry, fetcher)
            (destination / filename).write_text(content, encoding="utf-8")
    except Exception:
        remove_path(destination)
        raise
    logger.info("Saved %d gist files to %s", len(files), destination)
    return Retrieved(destination)


STRATEGIES: dict[RetrievalKind, Strategy] = {
    RetrievalKind.FILE: retrieve_file,
    RetrievalKind.RAW: retrieve_file,
    RetrievalKind.FOLDER: retrieve_folder,
    RetrievalKind.REPO: retrieve_folder,
    RetrievalKind.GIST: retrieve_gist,
}
