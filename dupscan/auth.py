"""Role checks for resolution actions."""

from dataclasses import dataclass

from dupscan.errors import AuthorizationError

VIEWER = 'viewer'
EDITOR = 'editor'
ADMIN = 'admin'

# Higher rank includes every permission of the lower ones
ROLE_RANK: dict[str, int] = {VIEWER: 0, EDITOR: 1, ADMIN: 2}


@dataclass(frozen=True)
class Actor:
    """The operator performing an action."""

    id: str
    role: str = VIEWER

    def has_role(self, required: str) -> bool:
        return ROLE_RANK.get(self.role, -1) >= ROLE_RANK[required]


def require_role(actor: Actor, required: str, action: str) -> None:
    """Raise AuthorizationError unless actor holds at least the required role."""
    if not actor.has_role(required):
        raise AuthorizationError(
            f"{action} requires role '{required}', {actor.id} has '{actor.role}'",
            context={'actor': actor.id, 'role': actor.role, 'required': required},
        )
