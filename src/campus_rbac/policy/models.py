"""Permission table and isolation policy models."""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, field_validator

from campus_rbac.domain.roles import Role


def _ensure_list(v: Any) -> list:
    """Convert None to empty list, pass through lists."""
    if v is None:
        return []
    return v


class AccessScope(str, Enum):
    READ = "read"
    APPROVE = "approve"
    MANAGE = "manage"


class IsolationPolicy(BaseModel):
    # Scopes in which the principal bypasses department isolation.
    principal_global_scopes: list[AccessScope] = Field(
        default_factory=lambda: [AccessScope.READ, AccessScope.APPROVE]
    )

    @field_validator("principal_global_scopes", mode="before")
    @classmethod
    def _validate_scopes(cls, v: Any) -> list:
        return _ensure_list(v)


class PermissionConfig(BaseModel):
    version: int = Field(default=1)
    roles: dict[Role, dict[str, list[str]]] = Field(default_factory=dict)
    isolation: IsolationPolicy = Field(default_factory=IsolationPolicy)

    @field_validator("roles", mode="before")
    @classmethod
    def _validate_roles(cls, v: Any) -> dict:
        if v is None:
            return {}
        if isinstance(v, dict):
            return {
                role: {resource: _ensure_list(actions) for resource, actions in (grants or {}).items()}
                for role, grants in v.items()
            }
        return v

    @classmethod
    def from_yaml(cls, data: dict[str, object]) -> "PermissionConfig":
        return cls.model_validate(data)
