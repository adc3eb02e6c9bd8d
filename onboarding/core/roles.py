from enum import Enum
from typing import Iterable


class Role(str, Enum):
    HR_ADMIN = "hr_admin"
    HR_EXEC = "hr_exec"
    VIEWER = "viewer"


ROLE_HIERARCHY = {
    Role.HR_ADMIN: {Role.HR_ADMIN, Role.HR_EXEC, Role.VIEWER},
    Role.HR_EXEC: {Role.HR_EXEC, Role.VIEWER},
    Role.VIEWER: {Role.VIEWER},
}


def has_required_role(user_roles: Iterable[Role], required: Iterable[Role]) -> bool:
    granted: set[Role] = set()
    for role in user_roles:
        granted |= ROLE_HIERARCHY.get(Role(role), {Role(role)})
    required_set = {Role(r) for r in required}
    return bool(granted & required_set)
