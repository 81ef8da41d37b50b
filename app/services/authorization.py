"""Authorization gate: allow/deny decisions over role ranks. Pure; no I/O.

Assumes the actor's role claim was already verified (JWT). Fails closed: a
missing or unrecognized role never authorizes anything.
"""

from functools import lru_cache

from app.services.roles import RoleHierarchy, RoleLike, get_role_hierarchy


class UnauthenticatedError(Exception):
    """Raised when there is no actor role claim to authorize."""

    def __init__(self, message: str = "Missing authentication") -> None:
        self.message = message
        super().__init__(message)


class InsufficientPrivilegeError(Exception):
    """Raised when the actor's rank is too low (or unrecognized) for the action."""

    def __init__(self, message: str = "Access denied: insufficient privileges") -> None:
        self.message = message
        super().__init__(message)


class InvalidRoleError(Exception):
    """Raised when a requested target role is not a recognized role (input error)."""

    def __init__(self, message: str = "Invalid role specified") -> None:
        self.message = message
        super().__init__(message)


class AuthorizationGate:
    """Privilege checks built on an injected RoleHierarchy."""

    def __init__(self, hierarchy: RoleHierarchy) -> None:
        self._hierarchy = hierarchy

    @property
    def hierarchy(self) -> RoleHierarchy:
        return self._hierarchy

    def can_act_on(self, actor_role: RoleLike, target_role: RoleLike) -> bool:
        """
        True when the actor may create, or assign, the target role.

        An actor can never grant a rank strictly greater than its own.
        """
        actor_rank = self._hierarchy.rank(actor_role)
        target_rank = self._hierarchy.rank(target_role)
        if actor_rank is None or target_rank is None:
            return False
        return target_rank <= actor_rank

    def meets_minimum(self, actor_role: RoleLike, minimum_role: RoleLike) -> bool:
        """True when the actor's rank is at least the required rank."""
        actor_rank = self._hierarchy.rank(actor_role)
        minimum_rank = self._hierarchy.rank(minimum_role)
        if actor_rank is None or minimum_rank is None:
            return False
        return actor_rank >= minimum_rank

    def require_minimum(self, actor_role: RoleLike, minimum_role: RoleLike) -> int:
        """Return the actor rank, or raise Unauthenticated/InsufficientPrivilege."""
        if actor_role is None:
            raise UnauthenticatedError()
        actor_rank = self._hierarchy.rank(actor_role)
        if actor_rank is None or not self.meets_minimum(actor_rank, minimum_role):
            raise InsufficientPrivilegeError()
        return actor_rank

    def require_can_act_on(
        self,
        actor_role: RoleLike,
        target_role: RoleLike,
        message: str = "You cannot assign a role higher than your own",
    ) -> int:
        """
        Return the normalized target rank, or raise the specific failure.

        Order: no actor claim -> Unauthenticated; unknown target -> InvalidRole;
        unknown actor or target above actor -> InsufficientPrivilege.
        """
        if actor_role is None:
            raise UnauthenticatedError()
        target_rank = self._hierarchy.rank(target_role)
        if target_rank is None:
            raise InvalidRoleError()
        if not self.can_act_on(actor_role, target_rank):
            raise InsufficientPrivilegeError(message)
        return target_rank


@lru_cache
def get_authorization_gate() -> AuthorizationGate:
    """Return the shared gate over the process-wide role hierarchy."""
    return AuthorizationGate(get_role_hierarchy())
