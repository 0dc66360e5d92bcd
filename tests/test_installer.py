"""Installer tests: strategies, reclassification, cleanup, manifest, scope
moves, export/import, updates and the git client.

HTTP goes through httpx.MockTransport and git through FakeGit, both passed
to the installer explicitly. The GitClient tests run real git against a
local repository.
"""

import asyncio
import json
import shutil
import subprocess
import tempfile
from pathlib import Path

import httpx
import pytest

import sys
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from skill_courier.config import Settings
from skill_courier.core.fetcher import ContentFetcher
from skill_courier.core.git import GitClient
from skill_courier.core.installer import SmartInstaller, load_manifest
from skill_courier.core.parser import parse_input
from skill_courier.core.strategies import STRATEGIES, locate_sub_path
from skill_courier.core.updates import UpdateChecker
from skill_courier.errors import (
    FailureReason,
    GitError,
    InvalidJson,
    NetworkError,
    PathNotFound,
    UnexpectedContent,
)
from skill_courier.models import ArtifactType, InstallRecord, RetrievalKind, Scope

SKILLS_REPO = "https://github.com/anthropics/skills.git"
BUNDLE_REPO = "https://github.com/acme/bundle.git"


class FakeGit:
    """Clones by copying local fixture trees; only knows the given branches."""

    def __init__(self, repos: dict[str, Path], branches: tuple[str, ...] = ("main",)):
        self.repos = repos
        self.branches = branches
        self.calls: list[tuple[str, str | None]] = []
        self.clone_dirs: list[Path] = []

    async def clone(self, url: str, dest: Path, branch: str | None = None) -> None:
        self.calls.append((url, branch))
        self.clone_dirs.append(dest)
        if branch and branch not in self.branches:
            raise GitError(f"Remote branch {branch} not found")
        if url not in self.repos:
            raise GitError(f"repository {url} not found")
        shutil.copytree(self.repos[url], dest)

    async def head_commit(self, repo_dir: Path) -> str | None:
        return "deadbeef"


def make_repos(base: Path) -> dict[str, Path]:
    skills = base / "fixtures" / "skills"
    (skills / ".git").mkdir(parents=True, exist_ok=True)
    (skills / ".git" / "HEAD").write_text("ref: refs/heads/main\n")
    (skills / "pdf-tools" / "scripts").mkdir(parents=True, exist_ok=True)
    (skills / "pdf-tools" / "SKILL.md").write_text("---\nname: pdf-tools\n---\n# PDF\n")
    (skills / "pdf-tools" / "scripts" / "extract.py").write_text("print('pdf')\n")
    (skills / "pdf-tools" / ".git").mkdir(exist_ok=True)
    (skills / "pdf-tools" / ".git" / "config").write_text("[core]\n")
    (skills / "README.md").write_text("# Skills\n")

    bundle = base / "fixtures" / "bundle"
    (bundle / "kit" / "commands").mkdir(parents=True, exist_ok=True)
    (bundle / "kit" / "agents").mkdir(parents=True, exist_ok=True)
    (bundle / "kit" / "commands" / "deploy.md").write_text("# Deploy\n")
    (bundle / "kit" / "agents" / "reviewer.md").write_text("# Reviewer\n")
    (bundle / "only-commands" / "commands").mkdir(parents=True, exist_ok=True)
    (bundle / "only-commands" / "commands" / "ship.md").write_text("# Ship\n")
    return {SKILLS_REPO: skills, BUNDLE_REPO: bundle}


def make_installer(base: Path, handler=None, git: FakeGit | None = None, project_root: Path | None = None):
    settings = Settings(
        _env_file=None,
        global_skills_path=str(base / "home" / ".claude"),
        project_root=project_root,
    )
    transport = httpx.MockTransport(handler or (lambda request: httpx.Response(404)))
    fetcher = ContentFetcher(transport=transport)
    return SmartInstaller(settings, fetcher=fetcher, git=git or FakeGit(make_repos(base)))


def user_root(base: Path) -> Path:
    return base / "home" / ".claude"


def tree_snapshot(root: Path) -> list[str]:
    return sorted(p.relative_to(root).as_posix() for p in root.rglob("*")) if root.exists() else []


# ─── Folder / repo ─────────────────────────────────────────────────────────


def test_shorthand_folder_install_end_to_end():
    with tempfile.TemporaryDirectory() as tmp:
        base = Path(tmp)
        git = FakeGit(make_repos(base))
        installer = make_installer(base, git=git)

        result = asyncio.run(installer.install_input("anthropics/skills/pdf-tools", Scope.USER))

        final = user_root(base) / "skills" / "pdf-tools"
        assert result.success, result.error_message
        assert result.final_path == str(final)
        assert result.artifact_type is ArtifactType.SKILL
        assert tree_snapshot(final) == ["SKILL.md", "scripts", "scripts/extract.py"]
        assert git.calls == [(SKILLS_REPO, "main")]
        # Scratch clone directory is gone
        assert all(not d.parent.exists() for d in git.clone_dirs)

        manifest = load_manifest(user_root(base) / ".skill-courier.json")
        record = manifest.artifacts["skills/pdf-tools"]
        assert record.commit_sha == "deadbeef"
        assert record.source == "anthropics/skills/pdf-tools"


def test_repo_root_install_excludes_git_metadata():
    with tempfile.TemporaryDirectory() as tmp:
        base = Path(tmp)
        installer = make_installer(base)

        result = asyncio.run(installer.install_input("https://github.com/anthropics/skills", "user"))

        assert result.success, result.error_message
        final = Path(result.final_path)
        assert final == user_root(base) / "skills" / "skills"
        assert ".git" not in tree_snapshot(final)
        assert "pdf-tools/.git" not in tree_snapshot(final)
        assert "pdf-tools/SKILL.md" in tree_snapshot(final)


def test_missing_branch_falls_back_to_default():
    with tempfile.TemporaryDirectory() as tmp:
        base = Path(tmp)
        git = FakeGit(make_repos(base))
        installer = make_installer(base, git=git)

        result = asyncio.run(
            installer.install_input("https://github.com/anthropics/skills/tree/v9/pdf-tools", "user")
        )

        assert result.success, result.error_message
        assert git.calls == [(SKILLS_REPO, "v9"), (SKILLS_REPO, None)]


def test_fuzzy_sub_path_is_best_effort():
    """Heuristic: a renamed top-level directory still resolves by substring."""
    with tempfile.TemporaryDirectory() as tmp:
        clone = Path(tmp)
        (clone / ".git").mkdir()
        (clone / "pdf-tools").mkdir()
        (clone / "README.md").write_text("x")

        assert locate_sub_path(clone, "pdf-tools") == clone / "pdf-tools"
        assert locate_sub_path(clone, "PDF") == clone / "pdf-tools"

        try:
            locate_sub_path(clone, "spreadsheets")
        except PathNotFound as e:
            assert "pdf-tools" in e.message
            assert ".git" not in e.message
        else:
            raise AssertionError("expected PathNotFound")

        try:
            locate_sub_path(clone, "../outside")
        except PathNotFound:
            pass
        else:
            raise AssertionError("expected PathNotFound for escaping path")


def test_path_not_found_leaves_nothing_behind():
    with tempfile.TemporaryDirectory() as tmp:
        base = Path(tmp)
        git = FakeGit(make_repos(base))
        installer = make_installer(base, git=git)

        result = asyncio.run(installer.install_input("anthropics/skills/spreadsheets", "user"))

        assert not result.success
        assert result.reason is FailureReason.PATH_NOT_FOUND
        assert "Available" in result.error_message
        assert tree_snapshot(user_root(base) / "skills") == []
        assert all(not d.parent.exists() for d in git.clone_dirs)


def test_unknown_repository_is_network_error():
    with tempfile.TemporaryDirectory() as tmp:
        base = Path(tmp)
        installer = make_installer(base)

        result = asyncio.run(installer.install_input("nobody/nothing", "user"))

        assert not result.success
        assert result.reason is FailureReason.NETWORK_ERROR


# ─── Reclassification ──────────────────────────────────────────────────────


def test_multi_capability_folder_moves_to_plugins():
    with tempfile.TemporaryDirectory() as tmp:
        base = Path(tmp)
        installer = make_installer(base)

        result = asyncio.run(installer.install_input("acme/bundle/kit", "user"))

        assert result.success, result.error_message
        assert result.artifact_type is ArtifactType.PLUGIN
        assert result.final_path == str(user_root(base) / "plugins" / "kit")
        assert not (user_root(base) / "skills" / "kit").exists()

        commands = asyncio.run(installer.install_input("acme/bundle/only-commands", "user"))
        assert commands.success, commands.error_message
        assert commands.final_path == str(user_root(base) / "commands" / "only-commands")


def test_relocation_conflict_cleans_up_provisional_copy():
    with tempfile.TemporaryDirectory() as tmp:
        base = Path(tmp)
        installer = make_installer(base)
        existing = user_root(base) / "plugins" / "kit"
        existing.mkdir(parents=True, exist_ok=True)
        before = tree_snapshot(user_root(base))

        result = asyncio.run(installer.install_input("acme/bundle/kit", "user"))

        assert not result.success
        assert result.reason is FailureReason.ALREADY_EXISTS
        assert result.error_message.endswith("as plugin")
        assert tree_snapshot(user_root(base)) == before == ["plugins", "plugins/kit"]


# ─── Single file / raw ─────────────────────────────────────────────────────


def test_raw_file_install_and_idempotent_failure():
    body = b"---\nname: notes\n---\nUse these notes.\n"

    def handler(request: httpx.Request) -> httpx.Response:
        assert request.headers["User-Agent"] == "skill-courier"
        return httpx.Response(200, content=body)

    with tempfile.TemporaryDirectory() as tmp:
        base = Path(tmp)
        installer = make_installer(base, handler)
        url = "https://raw.githubusercontent.com/acme/docs/main/notes.md"

        first = asyncio.run(installer.install_input(url, "user"))
        assert first.success, first.error_message
        final = user_root(base) / "skills" / "notes.md"
        assert first.final_path == str(final)
        assert final.read_bytes() == body
        assert tree_snapshot(user_root(base) / "skills") == ["notes.md"]

        final.write_bytes(b"local edits")
        second = asyncio.run(installer.install_input(url, "user"))
        assert not second.success
        assert second.reason is FailureReason.ALREADY_EXISTS
        assert final.read_bytes() == b"local edits"


def test_single_file_reclassified_keeps_extension():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, content=b"# Reviewer agent\n")

    with tempfile.TemporaryDirectory() as tmp:
        base = Path(tmp)
        installer = make_installer(base, handler)
        url = "https://github.com/acme/tools/blob/main/plugins/reviewer-agent.md"

        descriptor = parse_input(url)
        assert descriptor.proposed_type is ArtifactType.PLUGIN

        result = asyncio.run(installer.install(descriptor, "user"))
        assert result.success, result.error_message
        assert result.final_path == str(user_root(base) / "agents" / "reviewer-agent.md")
        assert not (user_root(base) / "plugins" / "reviewer-agent.md").exists()


def test_html_page_is_rejected():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, content=b"\n  <!DOCTYPE html><html><body>Not Found</body></html>")

    with tempfile.TemporaryDirectory() as tmp:
        base = Path(tmp)
        installer = make_installer(base, handler)

        result = asyncio.run(
            installer.install_input("https://raw.githubusercontent.com/a/b/main/x.md", "user")
        )
        assert result.reason is FailureReason.UNEXPECTED_CONTENT
        assert tree_snapshot(user_root(base)) == []


def test_tiny_body_is_rejected():
    with tempfile.TemporaryDirectory() as tmp:
        base = Path(tmp)
        installer = make_installer(base, lambda request: httpx.Response(200, content=b"ok"))

        result = asyncio.run(
            installer.install_input("https://raw.githubusercontent.com/a/b/main/x.md", "user")
        )
        assert result.reason is FailureReason.UNEXPECTED_CONTENT


def test_http_error_is_network_error():
    with tempfile.TemporaryDirectory() as tmp:
        base = Path(tmp)
        installer = make_installer(base, lambda request: httpx.Response(404, text="Not Found"))

        result = asyncio.run(
            installer.install_input("https://raw.githubusercontent.com/a/b/main/x.md", "user")
        )
        assert result.reason is FailureReason.NETWORK_ERROR
        assert "404" in result.error_message


# ─── Gist ──────────────────────────────────────────────────────────────────


def test_multi_file_gist_becomes_directory():
    gist = {
        "files": {
            "README.md": {"filename": "README.md", "content": "# Hello\n"},
            "helper.py": {
                "filename": "helper.py",
                "content": None,
                "raw_url": "https://gist.githubusercontent.com/alice/abc/raw/helper.py",
            },
        }
    }

    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.host == "api.github.com":
            assert request.url.path == "/gists/abc123abcdef"
            return httpx.Response(200, json=gist)
        return httpx.Response(200, text="print('hi')\n")

    with tempfile.TemporaryDirectory() as tmp:
        base = Path(tmp)
        installer = make_installer(base, handler)

        result = asyncio.run(installer.install_input("https://gist.github.com/alice/abc123abcdef", "user"))

        final = user_root(base) / "skills" / "gist-abc123ab"
        assert result.success, result.error_message
        assert result.final_path == str(final)
        assert (final / "README.md").read_text() == "# Hello\n"
        assert (final / "helper.py").read_text() == "print('hi')\n"


def test_single_file_gist_uses_file_extension():
    gist = {"files": {"deploy.sh": {"filename": "deploy.sh", "content": "echo deploy\n"}}}

    with tempfile.TemporaryDirectory() as tmp:
        base = Path(tmp)
        installer = make_installer(base, lambda request: httpx.Response(200, json=gist))

        result = asyncio.run(installer.install_input("gist:0123456789", "user"))

        assert result.success, result.error_message
        assert result.final_path == str(user_root(base) / "skills" / "gist-01234567.sh")


def test_empty_gist_fails():
    with tempfile.TemporaryDirectory() as tmp:
        base = Path(tmp)
        installer = make_installer(base, lambda request: httpx.Response(200, json={"files": {}}))

        result = asyncio.run(installer.install_input("gist:feedface", "user"))
        assert result.reason is FailureReason.EMPTY_GIST


def test_invalid_gist_json():
    with tempfile.TemporaryDirectory() as tmp:
        base = Path(tmp)
        installer = make_installer(base, lambda request: httpx.Response(200, text="<nope>"))

        result = asyncio.run(installer.install_input("gist:feedface", "user"))
        assert result.reason is FailureReason.INVALID_JSON


# ─── Scopes, parsing failures, uninstall ───────────────────────────────────


def test_project_scope_requires_project_root():
    with tempfile.TemporaryDirectory() as tmp:
        base = Path(tmp)
        installer = make_installer(base)

        result = asyncio.run(installer.install_input("anthropics/skills/pdf-tools", Scope.PROJECT))
        assert result.reason is FailureReason.NO_WORKSPACE_OPEN

        project = base / "project"
        project.mkdir()
        installer = make_installer(base, project_root=project)
        result = asyncio.run(installer.install_input("anthropics/skills/pdf-tools", Scope.PROJECT))
        assert result.success, result.error_message
        assert result.final_path == str(project / ".claude" / "skills" / "pdf-tools")


def test_unparseable_input():
    with tempfile.TemporaryDirectory() as tmp:
        installer = make_installer(Path(tmp))
        result = asyncio.run(installer.install_input("not a url, not shorthand", "user"))
        assert not result.success
        assert result.reason is FailureReason.UNPARSEABLE


def test_uninstall_removes_artifact_and_record():
    with tempfile.TemporaryDirectory() as tmp:
        base = Path(tmp)
        installer = make_installer(base)
        asyncio.run(installer.install_input("anthropics/skills/pdf-tools", "user"))
        assert [r.name for r in installer.installed("user")] == ["pdf-tools"]

        result = asyncio.run(installer.uninstall("pdf-tools", "skill", "user"))
        assert result.success
        assert not (user_root(base) / "skills" / "pdf-tools").exists()
        manifest = json.loads((user_root(base) / ".skill-courier.json").read_text())
        assert manifest["artifacts"] == {}

        again = asyncio.run(installer.uninstall("pdf-tools", "skill", "user"))
        assert again.reason is FailureReason.PATH_NOT_FOUND


# ─── Updates ───────────────────────────────────────────────────────────────


def test_update_checker_compares_commits():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/repos/anthropics/skills/commits"
        assert request.url.params["sha"] == "main"
        return httpx.Response(200, json=[{"sha": "cafebabe"}])

    checker = UpdateChecker(ContentFetcher(transport=httpx.MockTransport(handler)))
    record = InstallRecord(
        name="pdf-tools",
        type=ArtifactType.SKILL,
        path="skills/pdf-tools",
        repository_url=SKILLS_REPO,
        branch="main",
        commit_sha="deadbeef",
    )
    info = asyncio.run(checker.check(record))
    assert info.latest_commit == "cafebabe"
    assert info.has_update is True

    same = asyncio.run(checker.check(record.model_copy(update={"commit_sha": "cafebabe"})))
    assert same.has_update is False

    gist_record = InstallRecord(name="g", type=ArtifactType.SKILL, path="skills/g.md")
    assert asyncio.run(checker.check(gist_record)).error == "No repository URL found"


def test_update_checker_reports_errors():
    checker = UpdateChecker(ContentFetcher(transport=httpx.MockTransport(lambda r: httpx.Response(500))))
    record = InstallRecord(
        name="x", type=ArtifactType.SKILL, path="skills/x", repository_url=SKILLS_REPO, commit_sha="a"
    )
    results = asyncio.run(checker.check_all([record]))
    assert results[0].has_update is False
    assert "500" in results[0].error


# ─── Failed installs leave no directories behind ───────────────────────────


def test_failed_install_removes_directories_it_created():
    async def failing_folder(descriptor, destination, **_):
        destination.parent.mkdir(parents=True)
        raise UnexpectedContent("broken archive")

    with tempfile.TemporaryDirectory() as tmp:
        base = Path(tmp)
        plain = make_installer(base)
        installer = SmartInstaller(
            plain.settings,
            fetcher=plain.fetcher,
            git=plain.git,
            strategies={**STRATEGIES, RetrievalKind.FOLDER: failing_folder},
        )

        result = asyncio.run(installer.install_input("anthropics/skills/pdf-tools", "user"))

        assert result.reason is FailureReason.UNEXPECTED_CONTENT
        assert not (base / "home").exists()


def test_gist_entry_without_content_or_raw_url():
    gist = {
        "files": {
            "a.md": {"filename": "a.md", "content": "# A\n"},
            "b.md": {"filename": "b.md", "content": None},
        }
    }

    with tempfile.TemporaryDirectory() as tmp:
        base = Path(tmp)
        installer = make_installer(base, lambda request: httpx.Response(200, json=gist))

        result = asyncio.run(installer.install_input("gist:feedface", "user"))

        assert not result.success
        assert result.reason is FailureReason.UNEXPECTED_CONTENT
        assert "b.md" in result.error_message
        assert not user_root(base).exists()


# ─── Uninstall stays inside the type's container ───────────────────────────


def test_uninstall_rejects_names_outside_container():
    with tempfile.TemporaryDirectory() as tmp:
        base = Path(tmp)
        installer = make_installer(base)
        asyncio.run(installer.install_input("anthropics/skills/pdf-tools", "user"))
        (user_root(base) / "skills" / "notes.md").write_text("# Notes\n")
        before = tree_snapshot(user_root(base))

        for name in ("..", ".", "*", "pdf-tools/..", "../skills", "", "PDF-TOOLS", "pdf-tools\n"):
            result = asyncio.run(installer.uninstall(name, "skill", "user"))
            assert not result.success, name
            assert result.reason is FailureReason.UNPARSEABLE, name

        assert tree_snapshot(user_root(base)) == before


# ─── Scope moves ───────────────────────────────────────────────────────────


def test_move_between_scopes_carries_the_record():
    with tempfile.TemporaryDirectory() as tmp:
        base = Path(tmp)
        project = base / "project"
        project.mkdir()
        installer = make_installer(base, project_root=project)
        asyncio.run(installer.install_input("anthropics/skills/pdf-tools", "user"))

        result = asyncio.run(installer.move("pdf-tools", "skill", "user", "project"))

        moved = project / ".claude" / "skills" / "pdf-tools"
        assert result.success, result.error_message
        assert result.final_path == str(moved)
        assert tree_snapshot(moved) == ["SKILL.md", "scripts", "scripts/extract.py"]
        assert not (user_root(base) / "skills" / "pdf-tools").exists()
        assert installer.installed("user") == []
        [record] = installer.installed("project")
        assert record.path == "skills/pdf-tools"
        assert record.source == "anthropics/skills/pdf-tools"

        copied = asyncio.run(installer.move("pdf-tools", "skill", "project", "user", keep_source=True))
        assert copied.success, copied.error_message
        assert moved.exists()
        assert (user_root(base) / "skills" / "pdf-tools" / "SKILL.md").exists()
        assert [r.name for r in installer.installed("user")] == ["pdf-tools"]
        assert [r.name for r in installer.installed("project")] == ["pdf-tools"]


def test_move_conflict_keeps_both_scopes_untouched():
    with tempfile.TemporaryDirectory() as tmp:
        base = Path(tmp)
        project = base / "project"
        project.mkdir()
        installer = make_installer(base, project_root=project)
        asyncio.run(installer.install_input("anthropics/skills/pdf-tools", "user"))
        asyncio.run(installer.install_input("anthropics/skills/pdf-tools", "project"))
        user_before = tree_snapshot(user_root(base))
        project_before = tree_snapshot(project)

        result = asyncio.run(installer.move("pdf-tools", "skill", "user", "project"))

        assert result.reason is FailureReason.ALREADY_EXISTS
        assert tree_snapshot(user_root(base)) == user_before
        assert tree_snapshot(project) == project_before

        same = asyncio.run(installer.move("pdf-tools", "skill", "user", "user"))
        assert same.reason is FailureReason.ALREADY_EXISTS


def test_move_requires_project_root_and_existing_artifact():
    with tempfile.TemporaryDirectory() as tmp:
        base = Path(tmp)
        installer = make_installer(base)
        asyncio.run(installer.install_input("anthropics/skills/pdf-tools", "user"))

        result = asyncio.run(installer.move("pdf-tools", "skill", "user", "project"))
        assert result.reason is FailureReason.NO_WORKSPACE_OPEN
        assert (user_root(base) / "skills" / "pdf-tools").exists()

        project = base / "project"
        project.mkdir()
        installer = make_installer(base, project_root=project)
        missing = asyncio.run(installer.move("docx", "skill", "user", "project"))
        assert missing.reason is FailureReason.PATH_NOT_FOUND
        assert tree_snapshot(project) == []


# ─── Export / import ───────────────────────────────────────────────────────


def test_export_then_import_into_fresh_home():
    with tempfile.TemporaryDirectory() as tmp, tempfile.TemporaryDirectory() as other:
        base = Path(tmp)
        installer = make_installer(base)
        asyncio.run(installer.install_input("anthropics/skills/pdf-tools", "user"))
        asyncio.run(installer.install_input("acme/bundle/kit", "user"))
        export_file = base / "export" / "artifacts.json"

        bundle = installer.export_manifest(export_file)

        assert bundle.version == 1
        assert sorted((a.name, a.type.value, a.scope.value) for a in bundle.artifacts) == [
            ("kit", "plugin", "user"),
            ("pdf-tools", "skill", "user"),
        ]
        data = json.loads(export_file.read_text())
        assert {a["source"] for a in data["artifacts"]} == {"anthropics/skills/pdf-tools", "acme/bundle/kit"}

        fresh = make_installer(Path(other))
        outcomes = asyncio.run(fresh.import_manifest(export_file))

        assert [o.success for o in outcomes] == [True, True]
        assert (user_root(Path(other)) / "skills" / "pdf-tools" / "SKILL.md").exists()
        assert (user_root(Path(other)) / "plugins" / "kit" / "commands" / "deploy.md").exists()
        assert sorted(r.name for r in fresh.installed("user")) == ["kit", "pdf-tools"]


def test_import_rejects_invalid_file():
    with tempfile.TemporaryDirectory() as tmp:
        base = Path(tmp)
        installer = make_installer(base)
        bad = base / "bad.json"
        bad.write_text('{"version": "one", "artifacts": 3}')

        with pytest.raises(InvalidJson):
            asyncio.run(installer.import_manifest(bad))
        with pytest.raises(PathNotFound):
            asyncio.run(installer.import_manifest(base / "missing.json"))


# ─── Real git client ───────────────────────────────────────────────────────

requires_git = pytest.mark.skipif(shutil.which("git") is None, reason="git is not installed")
requires_posix_sh = pytest.mark.skipif(sys.platform == "win32", reason="needs a POSIX shell")


def _git(*args: str, cwd: Path) -> str:
    completed = subprocess.run(
        ["git", "-c", "user.name=Test", "-c", "user.email=test@example.com", "-c", "init.defaultBranch=main", *args],
        cwd=cwd,
        check=True,
        capture_output=True,
        text=True,
    )
    return completed.stdout.strip()


def make_origin(base: Path) -> Path:
    origin = base / "origin"
    (origin / "pdf-tools").mkdir(parents=True)
    (origin / "pdf-tools" / "SKILL.md").write_text("# PDF\n")
    _git("init", cwd=origin)
    _git("add", ".", cwd=origin)
    _git("commit", "-m", "initial", cwd=origin)
    _git("branch", "-M", "main", cwd=origin)
    return origin


def fake_git_script(base: Path, body: str) -> Path:
    script = base / "fake-git"
    script.write_text("#!/bin/sh\n" + body)
    script.chmod(0o755)
    return script


@requires_git
def test_git_client_clones_local_repository():
    with tempfile.TemporaryDirectory() as tmp:
        base = Path(tmp)
        origin = make_origin(base)
        client = GitClient()
        dest = base / "clone"

        asyncio.run(client.clone(origin.as_uri(), dest, branch="main"))

        assert (dest / "pdf-tools" / "SKILL.md").read_text() == "# PDF\n"
        assert asyncio.run(client.head_commit(dest)) == _git("rev-parse", "HEAD", cwd=origin)


@requires_git
def test_git_client_unknown_branch_is_git_error():
    with tempfile.TemporaryDirectory() as tmp:
        base = Path(tmp)
        origin = make_origin(base)

        with pytest.raises(GitError):
            asyncio.run(GitClient().clone(origin.as_uri(), base / "clone", branch="no-such-branch"))


@requires_git
def test_head_commit_outside_a_repository_is_none():
    with tempfile.TemporaryDirectory() as tmp:
        plain = Path(tmp) / "plain"
        plain.mkdir()
        (plain / ".git").write_text("not a repository\n")
        assert asyncio.run(GitClient().head_commit(plain)) is None


def test_git_client_missing_binary_is_network_error():
    with tempfile.TemporaryDirectory() as tmp:
        client = GitClient(git_path="no-such-git-binary")
        with pytest.raises(NetworkError) as excinfo:
            asyncio.run(client.clone("https://github.com/a/b.git", Path(tmp) / "clone"))
        assert not isinstance(excinfo.value, GitError)
        assert "not found" in excinfo.value.message


@requires_posix_sh
def test_git_client_clone_arguments():
    with tempfile.TemporaryDirectory() as tmp:
        base = Path(tmp)
        script = fake_git_script(base, 'printf \'%s\\n\' "$@" > "$(dirname "$0")/args.txt"\n')
        dest = base / "clone"

        asyncio.run(GitClient(str(script)).clone("https://github.com/a/b.git", dest, branch="dev"))
        assert (base / "args.txt").read_text().splitlines() == [
            "clone", "--depth", "1", "--branch", "dev", "--", "https://github.com/a/b.git", str(dest),
        ]

        asyncio.run(GitClient(str(script)).clone("https://github.com/a/b.git", dest))
        assert (base / "args.txt").read_text().splitlines() == [
            "clone", "--depth", "1", "--", "https://github.com/a/b.git", str(dest),
        ]


@requires_posix_sh
def test_git_client_kills_clone_on_timeout():
    with tempfile.TemporaryDirectory() as tmp:
        script = fake_git_script(Path(tmp), "exec sleep 30\n")
        client = GitClient(str(script), timeout=0.2)

        with pytest.raises(NetworkError) as excinfo:
            asyncio.run(client.clone("https://github.com/a/b.git", Path(tmp) / "clone"))
        assert "timed out" in excinfo.value.message


if __name__ == "__main__":
    print("=" * 60)
    print("skill-courier installer tests")
    print("=" * 60)

    tests = [(name, fn) for name, fn in sorted(globals().items()) if name.startswith("test_")]

    passed = 0
    failed = 0

    for name, test_fn in tests:
        try:
            print(f"\n[TEST] {name}")
            test_fn()
            print("  PASS")
            passed += 1
        except Exception as e:
            print(f"  FAIL: {e}")
            failed += 1

    print(f"\n{'=' * 60}")
    print(f"Results: {passed} passed, {failed} failed, {passed + failed} total")
    print(f"{'=' * 60}")

    exit(1 if failed > 0 else 0)
