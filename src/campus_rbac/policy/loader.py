"""Permission loader for permissions.yaml."""

from __future__ import annotations

from pathlib import Path

import yaml

from campus_rbac.policy.defaults import DEFAULT_PERMISSIONS
from campus_rbac.policy.models import PermissionConfig


def load_permissions(path: str | None = None) -> PermissionConfig:
    if path is None:
        return PermissionConfig.model_validate(DEFAULT_PERMISSIONS)
    permissions_path = Path(path)
    if not permissions_path.exists():
        raise FileNotFoundError(f"Permissions file not found: {permissions_path}")
    with permissions_path.open("r", encoding="utf-8") as handle:
        data = yaml.safe_load(handle) or {}
    return PermissionConfig.from_yaml(data)
