"""
Menu forest construction.

Pure functions over flat menu rows; no I/O. Given the rows a user may see
(or every active row, for the admin view) this module returns an ordered
forest:

- A row whose parent_id is NULL, or names a menu absent from the input,
  becomes a root. A menu is never lost because an ancestor is hidden.
- Sibling groups are ordered by (menu_order, menu_name), stable on input
  order for ties.
- Rows that cannot be reached from any root (stored data containing a
  cycle) are promoted to roots and logged, rather than silently dropped.

It also holds AccessFlags, the six-flag value merged per menu by the RBAC
resolver. Write-side cycle checks run in MenuRepository.ancestor_ids.
"""

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field, fields

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AccessFlags:
    """
    Operation flags a user holds on a menu.

    Merging is component-wise boolean OR; there is no explicit deny.

    Example:
        >>> AccessFlags(view=True) | AccessFlags(view=True, modify=True)
        AccessFlags(view=True, create=False, modify=True, delete=False, upload=False, download=False)
    """

    view: bool = False
    create: bool = False
    modify: bool = False
    delete: bool = False
    upload: bool = False
    download: bool = False

    def __or__(self, other: "AccessFlags") -> "AccessFlags":
        if not isinstance(other, AccessFlags):
            return NotImplemented
        return AccessFlags(
            **{f.name: getattr(self, f.name) or getattr(other, f.name) for f in fields(self)}
        )

    def allows(self, flag: str) -> bool:
        """Whether the named flag ("view", "modify", ...) is granted."""
        return bool(getattr(self, flag))

    @classmethod
    def from_role_menu(cls, row: object) -> "AccessFlags":
        """
        Build flags from a role_menus row.

        A row without can_view grants nothing.
        """
        if not getattr(row, "can_view", False):
            return cls()
        return cls(
            view=True,
            create=bool(row.can_create),  # type: ignore[attr-defined]
            modify=bool(row.can_modify),  # type: ignore[attr-defined]
            delete=bool(row.can_delete),  # type: ignore[attr-defined]
            upload=bool(row.can_upload),  # type: ignore[attr-defined]
            download=bool(row.can_download),  # type: ignore[attr-defined]
        )

    def to_dict(self) -> dict[str, bool]:
        return {f.name: getattr(self, f.name) for f in fields(self)}


@dataclass
class MenuNode:
    """A node of a rendered menu forest."""

    id: int
    menu_name: str
    menu_code: str
    parent_id: int | None
    icon: str | None
    route: str | None
    menu_order: int
    access: AccessFlags | None = None
    children: list["MenuNode"] = field(default_factory=list)


def _sort_key(node: MenuNode) -> tuple[int, str]:
    return node.menu_order, node.menu_name


def build_menu_forest(
    menus: Iterable[object],
    access: Mapping[int, AccessFlags] | None = None,
) -> list[MenuNode]:
    """
    Assemble an ordered forest from flat menu rows.

    Args:
        menus: Rows with id, menu_name, menu_code, parent_id, icon, route
            and menu_order attributes (Menu models or equivalents)
        access: Merged flags per menu id, attached to each node if given

    Returns:
        Root nodes, each with its ordered children
    """
    nodes: dict[int, MenuNode] = {}
    for menu in menus:
        if menu.id in nodes:  # type: ignore[attr-defined]
            continue
        nodes[menu.id] = MenuNode(  # type: ignore[attr-defined]
            id=menu.id,  # type: ignore[attr-defined]
            menu_name=menu.menu_name,  # type: ignore[attr-defined]
            menu_code=menu.menu_code,  # type: ignore[attr-defined]
            parent_id=menu.parent_id,  # type: ignore[attr-defined]
            icon=menu.icon,  # type: ignore[attr-defined]
            route=menu.route,  # type: ignore[attr-defined]
            menu_order=menu.menu_order,  # type: ignore[attr-defined]
            access=access.get(menu.id) if access is not None else None,  # type: ignore[attr-defined]
        )

    roots: list[MenuNode] = []
    for node in nodes.values():
        parent = nodes.get(node.parent_id) if node.parent_id is not None else None
        if parent is None or parent is node:
            roots.append(node)
        else:
            parent.children.append(node)

    # Anything not reachable from a root sits on a cycle
    reachable: set[int] = set()
    stack = list(roots)
    while stack:
        node = stack.pop()
        reachable.add(node.id)
        stack.extend(node.children)

    for node in nodes.values():
        if node.id not in reachable:
            logger.warning(f"Menu {node.id} is on a parent cycle, rendering it at root")
            parent = nodes[node.parent_id]  # type: ignore[index]
            parent.children.remove(node)
            roots.append(node)
            stack = [node]
            while stack:
                current = stack.pop()
                reachable.add(current.id)
                stack.extend(current.children)

    _sort_forest(roots)
    return roots


def _sort_forest(siblings: list[MenuNode]) -> None:
    siblings.sort(key=_sort_key)
    for node in siblings:
        _sort_forest(node.children)
