"""skill-courier MCP server.

Provides 9 tools for installing Claude Code artifacts (skills, agents,
commands, plugins) from GitHub:
- parse_source: Show how an install target would be retrieved
- install_artifact: Download, classify and install into the user or project scope
- uninstall_artifact: Remove an installed artifact
- move_artifact: Move or copy an installed artifact between scopes
- export_artifacts: Write installed artifacts and their sources to a file
- import_artifacts: Re-install everything from an export file
- list_marketplace: Unified listing from the awesome-list and GitHub topic sources
- search_marketplace: Text search over marketplace listings
- check_updates: Compare installed commits with the repository heads
"""

import json
import logging

from mcp.server.fastmcp import FastMCP

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)

mcp = FastMCP(
    "skill-courier",
    instructions=(
        "Skill Courier installs Claude Code skills, agents, commands and plugins. "
        "Use search_marketplace or list_marketplace to discover artifacts, then "
        "install_artifact with a GitHub URL, raw URL, gist URL, gist:<id> or owner/repo[/path]. "
        "The artifact type is detected from the downloaded content, so the final path "
        "may differ from what the URL suggests."
    ),
)


@mcp.tool()
async def parse_source(source: str) -> str:
    """Parse an install target and show the retrieval plan (no download).

    Args:
        source: GitHub URL, raw URL, gist URL, gist:<id>, or owner/repo[/path]
    """
    from skill_courier.tools.install import parse_source as _parse

    descriptor = _parse(source)
    if descriptor is None:
        return json.dumps({"valid": False, "source": source}, indent=2)
    return json.dumps({"valid": True, **descriptor.model_dump(mode="json")}, indent=2)


@mcp.tool()
async def install_artifact(source: str, scope: str = "user", project_root: str = "") -> str:
    """Download, classify and install an artifact.

    Args:
        source: GitHub URL, raw URL, gist URL, gist:<id>, or owner/repo[/path]
        scope: "user" (~/.claude) or "project"
        project_root: Project directory, required when scope is "project"
    """
    from skill_courier.tools.install import install_artifact as _install

    result = await _install(source=source, scope=scope, project_root=project_root or None)
    return json.dumps(result.model_dump(mode="json"), indent=2)


@mcp.tool()
async def uninstall_artifact(name: str, artifact_type: str = "skill", scope: str = "user", project_root: str = "") -> str:
    """Remove an installed artifact.

    Args:
        name: Artifact name (directory or file stem)
        artifact_type: skill, agent, command or plugin
        scope: "user" or "project"
        project_root: Project directory, required when scope is "project"
    """
    from skill_courier.tools.install import uninstall_artifact as _uninstall

    result = await _uninstall(name=name, artifact_type=artifact_type, scope=scope, project_root=project_root or None)
    return json.dumps(result.model_dump(mode="json"), indent=2)


@mcp.tool()
async def move_artifact(
    name: str,
    artifact_type: str = "skill",
    from_scope: str = "user",
    to_scope: str = "project",
    keep_source: bool = False,
    project_root: str = "",
) -> str:
    """Move an installed artifact between the user and project scopes.

    Args:
        name: Artifact name (directory or file stem)
        artifact_type: skill, agent, command or plugin
        from_scope: Scope it is installed in
        to_scope: Scope to move it to
        keep_source: Copy instead of move
        project_root: Project directory, required when either scope is "project"
    """
    from skill_courier.tools.install import move_artifact as _move

    result = await _move(
        name=name,
        artifact_type=artifact_type,
        from_scope=from_scope,
        to_scope=to_scope,
        keep_source=keep_source,
        project_root=project_root or None,
    )
    return json.dumps(result.model_dump(mode="json"), indent=2)


@mcp.tool()
async def export_artifacts(path: str, project_root: str = "") -> str:
    """Export installed artifacts and their sources to a JSON file.

    Args:
        path: File to write
        project_root: Project directory; without it only the user scope is exported
    """
    from skill_courier.tools.install import export_artifacts as _export

    try:
        bundle = _export(path, project_root=project_root or None)
    except OSError as e:
        return json.dumps({"error": str(e), "reason": "filesystem_error"}, indent=2)
    return json.dumps(bundle.model_dump(mode="json"), indent=2)


@mcp.tool()
async def import_artifacts(path: str, project_root: str = "") -> str:
    """Re-install every artifact listed in an export file.

    Args:
        path: Export file written by export_artifacts
        project_root: Project directory, required for project-scope entries
    """
    from skill_courier.errors import InstallError
    from skill_courier.tools.install import import_artifacts as _import

    try:
        results = await _import(path, project_root=project_root or None)
    except InstallError as e:
        return json.dumps({"error": e.message, "reason": e.reason.value}, indent=2)
    return json.dumps([r.model_dump(mode="json") for r in results], indent=2)


@mcp.tool()
async def list_marketplace(force_refresh: bool = False, sources: str = "", artifact_type: str = "") -> str:
    """List marketplace artifacts from all sources (cached for 5 minutes).

    Args:
        force_refresh: Ignore cached results
        sources: Comma-separated source ids (default: all enabled)
        artifact_type: Only return skill, agent or plugin listings
    """
    from skill_courier.tools.marketplace import list_marketplace as _list

    source_ids = [s.strip() for s in sources.split(",") if s.strip()] or None
    result = await _list(force_refresh=force_refresh, source_ids=source_ids, artifact_type=artifact_type or None)
    return json.dumps(
        {
            "artifacts": [a.model_dump(mode="json") for a in result.artifacts],
            "sources": [s.model_dump() for s in result.sources],
            "errors": [e.model_dump() for e in result.errors],
        },
        indent=2,
    )


@mcp.tool()
async def search_marketplace(query: str, artifact_type: str = "", source_id: str = "", limit: int = 20) -> str:
    """Search marketplace listings by name, description, author and tags.

    Args:
        query: Text to look for (e.g. "pdf", "code review")
        artifact_type: Only return skill, agent or plugin listings
        source_id: Restrict to one source
        limit: Maximum number of results
    """
    from skill_courier.tools.marketplace import search_marketplace as _search

    results = await _search(
        query, artifact_type=artifact_type or None, source_id=source_id or None, limit=limit
    )
    return json.dumps([r.model_dump(mode="json") for r in results], indent=2)


@mcp.tool()
async def check_updates(scope: str = "user", project_root: str = "") -> str:
    """Check installed artifacts for newer commits upstream.

    Args:
        scope: "user" or "project"
        project_root: Project directory, required when scope is "project"
    """
    from skill_courier.errors import InstallError
    from skill_courier.tools.install import check_updates as _check

    try:
        results = await _check(scope=scope, project_root=project_root or None)
    except InstallError as e:
        return json.dumps({"error": e.message, "reason": e.reason.value}, indent=2)
    return json.dumps([r.model_dump() for r in results], indent=2)


def main():
    """Entry point for the MCP server."""
    mcp.run(transport="stdio")


if __name__ == "__main__":
    main()
