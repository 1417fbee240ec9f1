"""Resolve and create the planner's data directory."""

from __future__ import annotations

import os
import tempfile
from dataclasses import dataclass
from pathlib import Path
from types import MappingProxyType
from typing import Mapping

from ..errors import WorkspaceError

__all__ = [
    "WORKSPACE_ENV",
    "DEFAULT_WORKSPACE",
    "WorkspaceLayout",
    "ensure_workspace",
]


WORKSPACE_ENV = "STUDY_PLANNER_HOME"
DEFAULT_WORKSPACE = Path.home() / ".study-planner"

_SUBDIRS = ("config", "logs", "content")


@dataclass(frozen=True)
class WorkspaceLayout:
    """Resolved workspace root and its named subdirectories."""

    home: Path
    directories: Mapping[str, Path]
    created: Mapping[str, bool]

    def path_for(self, key: str) -> Path:
        try:
            return self.directories[key]
        except KeyError as exc:
            raise WorkspaceError(f"Unknown workspace directory '{key}'.") from exc

    @property
    def content_file(self) -> Path:
        return self.path_for("content") / "subjects.json"

    @property
    def config_file(self) -> Path:
        return self.path_for("config") / "study-planner.toml"


def ensure_workspace(
    *,
    path: Path | None = None,
    env: Mapping[str, str] | None = None,
    create: bool = True,
) -> WorkspaceLayout:
    """Return the workspace layout, creating directories when ``create``.

    ``path`` wins over ``STUDY_PLANNER_HOME``, which wins over the default.
    Only the default location falls back to the temp dir when it cannot be
    created.
    """

    env_map = os.environ if env is None else env
    base, explicit = _resolve_base(path, env_map)
    candidates = [base]
    if create and not explicit:
        candidates.append(Path(tempfile.gettempdir()) / "study-planner")

    last_error: Exception | None = None
    for candidate in candidates:
        try:
            return _materialize(candidate, create=create)
        except PermissionError as exc:
            last_error = exc
    raise WorkspaceError(f"Unable to prepare workspace at {base}") from last_error


def _resolve_base(
    override: Path | None, env: Mapping[str, str]
) -> tuple[Path, bool]:
    if override is not None:
        return override.expanduser().absolute(), True
    custom = (env.get(WORKSPACE_ENV) or "").strip()
    if custom:
        return Path(custom).expanduser().absolute(), True
    return DEFAULT_WORKSPACE, False


def _materialize(base: Path, *, create: bool) -> WorkspaceLayout:
    if base.exists() and not base.is_dir():
        raise WorkspaceError(f"Workspace path is not a directory: {base}")
    created = {"home": _make_dir(base) if create else False}
    directories: dict[str, Path] = {}
    for name in _SUBDIRS:
        directory = base / name
        if directory.exists() and not directory.is_dir():
            raise WorkspaceError(
                f"Expected workspace directory for '{name}': {directory}"
            )
        created[name] = _make_dir(directory) if create else False
        directories[name] = directory
    return WorkspaceLayout(
        home=base,
        directories=MappingProxyType(directories),
        created=MappingProxyType(created),
    )


def _make_dir(path: Path) -> bool:
    existed = path.exists()
    path.mkdir(parents=True, exist_ok=True)
    try:
        path.chmod(0o700)
    except (PermissionError, NotImplementedError):
        pass
    return not existed
