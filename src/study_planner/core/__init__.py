"""Shared helpers for the planner CLI: client, files, logging, workspace."""

from __future__ import annotations

from .ai import load_client
from .files import (
    attachment_from_path,
    collect_upload_paths,
    encode_data_url,
    read_text_file,
)
from .logging import JsonLogFormatter, configure_logger, reset_logger
from .workspace import (
    WORKSPACE_ENV,
    WorkspaceLayout,
    ensure_workspace,
)

__all__ = [
    "load_client",
    "attachment_from_path",
    "collect_upload_paths",
    "encode_data_url",
    "read_text_file",
    "JsonLogFormatter",
    "configure_logger",
    "reset_logger",
    "WORKSPACE_ENV",
    "WorkspaceLayout",
    "ensure_workspace",
]
