"""Install, uninstall and update tools for artifact management."""

from pathlib import Path

from skill_courier.config import Settings, settings
from skill_courier.core.fetcher import ContentFetcher
from skill_courier.core.installer import SmartInstaller
from skill_courier.core.parser import is_valid_input, parse_input
from skill_courier.core.updates import UpdateChecker
from skill_courier.models import ArtifactDescriptor, ExportBundle, InstallOutcome, Scope, UpdateInfo


def _settings_for(project_root: str | None) -> Settings:
    if project_root:
        return settings.model_copy(update={"project_root": Path(project_root)})
    return settings


def parse_source(source: str) -> ArtifactDescriptor | None:
    """Parse an install target without touching the network.

    Returns None when the input is not something we know how to install.
    """
    if not is_valid_input(source):
        return None
    return parse_input(source)


async def install_artifact(source: str, scope: str = "user", project_root: str | None = None) -> InstallOutcome:
    """Download, classify and install an artifact.

    Pipeline: parse -> retrieve -> reclassify -> relocate -> record.

    Args:
        source: GitHub URL, raw URL, gist URL, gist:<id>, or owner/repo[/path]
        scope: "user" (~/.claude) or "project" (<project_root>/.claude)
        project_root: Project directory, required for the project scope

    Returns:
        InstallOutcome with the final path or the failure reason.
    """
    installer = SmartInstaller(_settings_for(project_root))
    return await installer.install_input(source, Scope(scope))


async def uninstall_artifact(
    name: str, artifact_type: str = "skill", scope: str = "user", project_root: str | None = None
) -> InstallOutcome:
    """Remove an installed artifact and its manifest record."""
    installer = SmartInstaller(_settings_for(project_root))
    return await installer.uninstall(name, artifact_type, Scope(scope))


async def check_updates(scope: str = "user", project_root: str | None = None) -> list[UpdateInfo]:
    """Compare recorded commits of installed artifacts with their repositories."""
    scoped = _settings_for(project_root)
    installer = SmartInstaller(scoped)
    checker = UpdateChecker(ContentFetcher.from_settings(scoped))
    return await checker.check_all(installer.installed(Scope(scope)))


async def move_artifact(
    name: str,
    artifact_type: str = "skill",
    from_scope: str = "user",
    to_scope: str = "project",
    keep_source: bool = False,
    project_root: str | None = None,
) -> InstallOutcome:
    """Move (or copy) an installed artifact between the user and project scopes."""
    installer = SmartInstaller(_settings_for(project_root))
    return await installer.move(name, artifact_type, Scope(from_scope), Scope(to_scope), keep_source=keep_source)


def export_artifacts(path: str, project_root: str | None = None) -> ExportBundle:
    """Write installed artifacts and their sources to a JSON file."""
    installer = SmartInstaller(_settings_for(project_root))
    return installer.export_manifest(Path(path).expanduser())


async def import_artifacts(path: str, project_root: str | None = None) -> list[InstallOutcome]:
    """Re-install everything listed in an export file."""
    installer = SmartInstaller(_settings_for(project_root))
    return await installer.import_manifest(Path(path).expanduser())
