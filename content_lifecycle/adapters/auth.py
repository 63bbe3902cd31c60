from typing import Any

from content_lifecycle.domain.entities import Actor
from content_lifecycle.rules.models import Rules


class PolicyAuthorizer:
    """
    Role-based allow/deny from the rules RBAC table.

    A role grants a permission if it lists it, lists "*", or lists the
    scoped wildcard (e.g. "content:*" matches "content:edit").
    """

    def __init__(self, rules: Rules):
        self.rules = rules

    def is_allowed(self, actor: Actor, permission: str, item: Any = None) -> bool:
        for role in actor.roles:
            allowed_actions = self.rules.rbac.roles.get(role, [])
            if "*" in allowed_actions:
                return True
            if permission in allowed_actions:
                return True

            if ":" in permission:
                scope = permission.split(":")[0]
                if f"{scope}:*" in allowed_actions:
                    return True

        return False


class AllowAllAuthorizer:
    def is_allowed(self, actor: Actor, permission: str, item: Any = None) -> bool:
        return True


class DenyAllAuthorizer:
    def is_allowed(self, actor: Actor, permission: str, item: Any = None) -> bool:
        return False
