"""
Operator roles and permissions.

Built-in roles are ``SUPERADMIN``, ``SUPPORT_ADMIN`` and one
``<DEPT>_{SUPERADMIN,ADMIN,WORKER}`` triple per department. Custom roles are
persisted in ``admin_roles`` and resolved through the same templates.
"""

from typing import Dict, Iterable, List, Optional, Tuple

SUPERADMIN = "SUPERADMIN"

DEPARTMENTS = ("FINANCE", "CALL", "LIVE_SUPPORT", "MARKETING", "ACCOUNTING", "SUPPORT")

# Highest first
ROLE_LEVELS = ("SUPERADMIN", "ADMIN", "WORKER")

ROLE_TYPES = (
    "SUPERADMIN",
    "DEPARTMENT_SUPERADMIN",
    "DEPARTMENT_ADMIN",
    "DEPARTMENT_WORKER",
)

# Operational permissions held in the operator's own permission bag
OPERATOR_PERMISSIONS = (
    "user_management",
    "balance_adjustments",
    "deposit_approval",
    "withdrawal_approval",
    "bonus_management",
    "game_management",
    "report_access",
    "system_settings",
)

# Governance permissions granted by the role template
PERMISSION_TEMPLATES: Dict[str, Dict[str, bool]] = {
    "SUPERADMIN": {
        "manage_roles": True,
        "create_admins": True,
        "delete_admins": True,
        "assign_tasks": True,
        "override_access": True,
        "view_all": True,
    },
    "DEPARTMENT_SUPERADMIN": {
        "manage_roles": True,
        "create_admins": True,
        "delete_admins": False,
        "assign_tasks": True,
        "override_access": False,
        "view_department": True,
    },
    "DEPARTMENT_ADMIN": {
        "manage_roles": False,
        "create_admins": False,
        "delete_admins": False,
        "assign_tasks": True,
        "override_access": False,
        "view_department": True,
    },
    "DEPARTMENT_WORKER": {
        "manage_roles": False,
        "create_admins": False,
        "delete_admins": False,
        "assign_tasks": False,
        "override_access": False,
        "view_department": False,
    },
}


def generate_roles() -> List[str]:
    roles = []
    for dept in DEPARTMENTS:
        roles.extend(f"{dept}_{level}" for level in ROLE_LEVELS)
    roles.extend(["SUPPORT_ADMIN", SUPERADMIN])
    # SUPPORT_ADMIN is also the SUPPORT department admin; keep first occurrence
    return list(dict.fromkeys(roles))


BUILTIN_ROLES = generate_roles()


def parse_role(role: str) -> Tuple[Optional[str], Optional[str]]:
    """Split a role name into ``(department, level)``.

    ``LIVE_SUPPORT_ADMIN`` parses to ``("LIVE_SUPPORT", "ADMIN")``. Roles
    without a level suffix parse to ``(None, None)``.
    """
    if role == SUPERADMIN:
        return None, SUPERADMIN
    for level in ROLE_LEVELS:
        suffix = f"_{level}"
        if role.endswith(suffix) and len(role) > len(suffix):
            return role[: -len(suffix)], level
    return None, None


def role_type_for(role: str) -> Optional[str]:
    department, level = parse_role(role)
    if level is None:
        return None
    if department is None:
        return "SUPERADMIN"
    return f"DEPARTMENT_{level}"


def permissions_for_role(role: str, role_type: Optional[str] = None) -> Dict[str, bool]:
    """Role template permissions; ``role_type`` overrides parsing for custom roles."""
    template = PERMISSION_TEMPLATES.get(role_type or role_type_for(role) or "", {})
    return dict(template)


def has_role(user_role: Optional[str], required_roles: Iterable[str]) -> bool:
    """Check ``user_role`` against ``required_roles``.

    SUPERADMIN passes everything. Within one department the hierarchy is
    SUPERADMIN > ADMIN > WORKER.
    """
    if not user_role:
        return False
    if user_role == SUPERADMIN:
        return True

    required = list(required_roles)
    if user_role in required:
        return True
    if not required:
        return False

    user_dept, user_level = parse_role(user_role)
    required_dept, required_level = parse_role(required[0])
    if user_dept is None or user_dept != required_dept:
        return False
    if user_level is None or required_level is None:
        return False
    return ROLE_LEVELS.index(user_level) <= ROLE_LEVELS.index(required_level)


def can_manage_role(user_role: Optional[str], target_role: str, target_department: Optional[str] = None) -> bool:
    """SUPERADMIN manages any role; a department superadmin manages its department.

    Custom role names carry no department, so callers pass ``target_department``.
    """
    department = target_department or parse_role(target_role)[0]
    if department is None:
        return user_role == SUPERADMIN
    return has_role(user_role, [f"{department}_SUPERADMIN"])


def effective_permissions(
    role: str,
    operator_permissions: Optional[Dict[str, bool]] = None,
    is_owner: bool = False,
    role_type: Optional[str] = None,
) -> Dict[str, bool]:
    """Merge role template and operator bag. Owners and SUPERADMIN hold everything."""
    if is_owner or role == SUPERADMIN:
        all_permissions = {name: True for name in OPERATOR_PERMISSIONS}
        all_permissions.update(PERMISSION_TEMPLATES["SUPERADMIN"])
        return all_permissions

    merged = {name: False for name in OPERATOR_PERMISSIONS}
    merged.update(permissions_for_role(role, role_type))
    for name, granted in (operator_permissions or {}).items():
        if name in OPERATOR_PERMISSIONS:
            merged[name] = bool(granted)
    return merged
