"""
RBAC resolver.

Computes, for a user, from the user -> role -> permission / menu graph:
- roles_of: active roles through active assignments
- permissions_of: union of active permission grants over those roles
- menu_access: per menu, the boolean OR of every role's flags, for menus
  at least one role can view

Results may be cached in a PermissionCache. Every service that writes
user_roles, role_permissions, role_menus or an is_active flag on a user, role,
permission or menu calls invalidate() after committing.

The cache is process-local. With several worker processes a write in one
process is not seen by the caches of the others until their entries expire,
so the TTL bounds how stale a decision can be.
"""

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from src.core.database import retry_transient
from src.exceptions import MenuForbiddenError, NotFoundError, PermissionDeniedError
from src.models.role import Role
from src.repositories.menu_repository import MenuRepository
from src.repositories.rbac_repository import RbacRepository
from src.services.menu_tree import AccessFlags, MenuNode, build_menu_forest

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ResolvedAccess:
    """Snapshot of a user's effective authorisation."""

    role_codes: tuple[str, ...]
    permissions: frozenset[str]
    menu_access: dict[int, AccessFlags]


class PermissionCache:
    """
    Per-user cache of resolved access with whole-cache invalidation.

    invalidate() bumps a generation counter; entries stored under an older
    generation are treated as misses. A resolution that started before an
    invalidation is not stored.

    Args:
        ttl_seconds: Entry lifetime
        clock: Monotonic time source (injectable for tests)
    """

    def __init__(self, ttl_seconds: float = 30.0, clock: Callable[[], float] = time.monotonic):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._generation = 0
        self._entries: dict[int, tuple[int, float, ResolvedAccess]] = {}

    @property
    def generation(self) -> int:
        return self._generation

    def get(self, user_id: int) -> ResolvedAccess | None:
        entry = self._entries.get(user_id)
        if entry is None:
            return None
        generation, stored_at, value = entry
        if generation != self._generation or self._clock() - stored_at > self.ttl_seconds:
            self._entries.pop(user_id, None)
            return None
        return value

    def put(self, user_id: int, value: ResolvedAccess, generation: int) -> None:
        if generation == self._generation:
            self._entries[user_id] = (generation, self._clock(), value)

    def invalidate(self) -> None:
        """Drop every entry."""
        self._generation += 1
        self._entries.clear()
        logger.debug(f"Permission cache invalidated (generation {self._generation})")


class RbacService:
    """
    Service resolving a user's roles, permissions and menu access.

    Args:
        session: Async database session
        cache: Optional shared PermissionCache
    """

    def __init__(self, session: AsyncSession, cache: PermissionCache | None = None):
        self.session = session
        self.cache = cache
        self.rbac_repo = RbacRepository(session)
        self.menu_repo = MenuRepository(session)

    async def _read(self, operation: Callable[[], Any], description: str) -> Any:
        return await retry_transient(operation, session=self.session, description=description)

    async def roles_of(self, user_id: int) -> list[Role]:
        """Active roles of a user through active assignments."""
        return await self._read(lambda: self.rbac_repo.roles_of(user_id), "roles lookup")

    async def resolve(self, user_id: int) -> ResolvedAccess:
        """
        Resolve (or fetch from cache) the user's effective authorisation.

        Returns:
            ResolvedAccess with role codes, permission codes and merged flags
        """
        generation = 0
        if self.cache is not None:
            cached = self.cache.get(user_id)
            if cached is not None:
                return cached
            generation = self.cache.generation

        roles = await self.roles_of(user_id)
        permissions = await self._read(
            lambda: self.rbac_repo.permission_codes_of(user_id), "permissions lookup"
        )
        grants = await self._read(
            lambda: self.rbac_repo.menu_grants_of(user_id), "menu access lookup"
        )

        menu_access: dict[int, AccessFlags] = {}
        for grant in grants:
            flags = AccessFlags.from_role_menu(grant)
            if not flags.view:
                continue
            menu_access[grant.menu_id] = menu_access.get(grant.menu_id, AccessFlags()) | flags

        resolved = ResolvedAccess(
            role_codes=tuple(role.role_code for role in roles),
            permissions=frozenset(permissions),
            menu_access=menu_access,
        )

        if self.cache is not None:
            self.cache.put(user_id, resolved, generation)
        return resolved

    async def permissions_of(self, user_id: int) -> set[str]:
        """Effective permission codes of a user."""
        return set((await self.resolve(user_id)).permissions)

    async def menu_access(self, user_id: int) -> dict[int, AccessFlags]:
        """Merged AccessFlags per viewable menu id."""
        return dict((await self.resolve(user_id)).menu_access)

    async def has_permission(self, user_id: int, permission_code: str) -> bool:
        """Whether the user holds a permission code."""
        return permission_code in (await self.resolve(user_id)).permissions

    async def require_permission(self, user_id: int, permission_code: str) -> None:
        """
        Raises:
            PermissionDeniedError: If the user lacks the permission
        """
        if not await self.has_permission(user_id, permission_code):
            logger.warning(f"Permission denied: user {user_id} lacks {permission_code}")
            raise PermissionDeniedError(details={"required_permission": permission_code})

    async def require_menu_access(self, user_id: int, menu_code: str, flag: str = "view") -> AccessFlags:
        """
        Check that one of the user's roles grants flag on the menu.

        Returns:
            The user's merged flags on that menu

        Raises:
            NotFoundError: If no active menu has that code
            MenuForbiddenError: If the flag is not granted
        """
        menu = await self._read(lambda: self.menu_repo.get_by_code(menu_code), "menu lookup")
        if menu is None:
            raise NotFoundError("Menu")

        flags = (await self.resolve(user_id)).menu_access.get(menu.id, AccessFlags())
        if not flags.allows(flag):
            logger.warning(f"Menu access denied: user {user_id} lacks {flag} on {menu_code}")
            raise MenuForbiddenError(details={"menu_code": menu_code, "required": flag})
        return flags

    async def menu_tree_for(self, user_id: int) -> list[MenuNode]:
        """
        The user's accessible menu forest with merged flags.

        Only active, visible menus the user can view are included; a menu
        whose parent is not included is rendered at root.
        """
        access = await self.menu_access(user_id)
        menus = await self._read(
            lambda: self.menu_repo.get_visible_by_ids(access.keys()), "menu rows"
        )
        return build_menu_forest(menus, access)
