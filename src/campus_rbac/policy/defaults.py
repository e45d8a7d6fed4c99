"""Built-in permission table for the institution's five-level hierarchy."""

from __future__ import annotations

DEFAULT_PERMISSIONS: dict[str, object] = {
    "version": 1,
    "roles": {
        "admin": {
            "department": ["create", "read", "update", "delete", "list-all", "manage-hod"],
            "academic-year": ["create", "read", "update", "delete", "list-all"],
            "semester": ["create", "read", "update", "delete", "list-all"],
            "faculty": [
                "create",
                "read",
                "update",
                "delete",
                "assign-department",
                "approve-account",
                "list-all",
                "manage-all-depts",
            ],
            "principal": ["create", "read", "update", "delete", "list-all"],
            "request": ["read-all", "approve", "reject", "issue", "list-all"],
            "analytics": ["read-all", "generate-reports"],
            "audit": ["read-all", "export"],
        },
        "principal": {
            "department": ["read", "list-all", "assign-hod"],
            "faculty": ["read", "list-all", "read-all-depts", "approve-account"],
            "request": ["read-all", "approve", "reject", "issue", "list-all"],
            "analytics": ["read-all", "generate-reports"],
            "audit": ["read-all"],
            "course": ["read-all-depts", "list-all"],
        },
        "hod": {
            "department": ["read-own"],
            "faculty": [
                "create",
                "read",
                "update",
                "delete",
                "list-own-dept",
                "manage-own-dept",
                "assign-to-dept",
                "approve-account",
            ],
            "course": ["read-own", "update-own", "list-own-dept"],
            "attendance": ["create", "read-own", "update-own", "list-own-dept"],
            "assignment": ["create", "read-own", "update-own", "list-own-dept"],
            "materials": ["upload", "read-own", "delete-own", "list-own-dept"],
            "request": ["read-own-dept", "approve", "reject", "forward-to-principal"],
            "student": ["read-own-dept", "list-own-dept"],
        },
        "faculty": {
            "course": ["read-own", "update-own", "list-department"],
            "attendance": ["create", "read-own", "update-own", "list-department"],
            "assignment": ["create", "read-own", "update-own", "list-department"],
            "materials": ["upload", "read-own", "delete-own", "list-department"],
            "request": ["read-department", "approve", "reject", "forward-to-hod"],
            "student": ["read-department", "list-department"],
        },
        "student": {
            "course": ["read-own", "enroll", "list-department"],
            "attendance": ["read-own"],
            "assignment": ["read-own", "submit"],
            "materials": ["read-department"],
            "request": ["create", "read-own", "track-approval"],
            "profile": ["read-own", "update-own"],
            "faculty": ["list-own-dept", "read-own-dept"],
        },
    },
    "isolation": {
        "principal_global_scopes": ["read", "approve"],
    },
}
