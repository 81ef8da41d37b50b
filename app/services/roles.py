"""Role hierarchy: total order over role identifiers (numeric rank or symbolic name).

Roles arrive as integers in token claims and as names in request bodies. Every
boundary normalizes through RoleHierarchy.rank; ranks are never compared ad hoc.
"""

from enum import IntEnum
from functools import lru_cache
from types import MappingProxyType
from typing import Mapping, Union


class Role(IntEnum):
    """Five-tier role ranking; a higher value holds every privilege of a lower one."""

    User = 1
    Moderator = 2
    Admin = 3
    SuperAdmin = 4
    Owner = 5


RoleLike = Union[int, str, Role, None]


class RoleHierarchy:
    """
    Immutable role name -> rank table.

    Built once at startup (see get_role_hierarchy) and injected where needed.
    rank() is the only place role values are validated; unknown input yields None.
    """

    __slots__ = ("_by_name", "_names_by_rank")

    def __init__(self, table: Mapping[str, int]) -> None:
        by_name = {name.strip().lower(): int(rank) for name, rank in table.items()}
        ranks = sorted(by_name.values())
        if ranks != list(range(1, len(ranks) + 1)):
            raise ValueError("Role ranks must be dense integers starting at 1")
        self._by_name = MappingProxyType(by_name)
        self._names_by_rank = MappingProxyType(
            {rank: name for name, rank in table.items()}
        )

    @classmethod
    def default(cls) -> "RoleHierarchy":
        return cls({role.name: role.value for role in Role})

    @property
    def max_rank(self) -> int:
        return len(self._by_name)

    def rank(self, role: RoleLike) -> int | None:
        """
        Resolve a numeric rank or a role name to its integer rank.

        Returns None for anything unrecognized (callers must treat None as deny).
        Booleans are rejected even though they are ints.
        """
        if role is None or isinstance(role, bool):
            return None
        if isinstance(role, int):
            value = int(role)
            return value if 1 <= value <= self.max_rank else None
        if isinstance(role, str):
            key = role.strip().lower()
            if not key:
                return None
            # ASCII digits only; int() rejects characters like "²" that isdigit() accepts.
            if key.isascii() and key.isdigit():
                if len(key) > len(str(self.max_rank)):
                    return None
                return self.rank(int(key))
            return self._by_name.get(key)
        return None

    def name(self, rank: int) -> str | None:
        """Canonical role name for a rank, or None when out of range."""
        return self._names_by_rank.get(rank)

    def names(self) -> list[str]:
        """Role names ordered by ascending rank."""
        return [self._names_by_rank[r] for r in sorted(self._names_by_rank)]


@lru_cache
def get_role_hierarchy() -> RoleHierarchy:
    """Return the process-wide role hierarchy (safe to call from dependencies)."""
    return RoleHierarchy.default()
