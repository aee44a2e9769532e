"""
Menu API routes.

This module provides:
- GET /api/v1/menus/my-tree - The caller's accessible menu forest with flags
- GET /api/v1/menus/access/{menu_code} - The caller's flags on one menu
- GET /api/v1/menus/tree - Full forest of active menus (admin)
- GET /api/v1/menus - Flat list of active menus (admin)
- GET /api/v1/menus/{menu_id} - Get menu (admin)
- POST /api/v1/menus - Create menu
- PUT /api/v1/menus/reorder - Batch display order change
- PUT /api/v1/menus/{menu_id} - Update menu (cycle-checked)
- DELETE /api/v1/menus/{menu_id} - Soft delete menu (no active children)
"""

import logging

from fastapi import APIRouter, Depends, Request, status

from src.api.dependencies import (
    CurrentPrincipal,
    MenuServiceDep,
    RbacServiceDep,
    record_activity,
    require_menu_access,
    require_permission,
)
from src.models.enums import ActivityAction, SystemPermission
from src.schemas.common import ApiResponse
from src.schemas.menu import (
    AccessFlagsResponse,
    MenuCreate,
    MenuNodeResponse,
    MenuReorderRequest,
    MenuResponse,
    MenuUpdate,
)
from src.services.menu_tree import AccessFlags

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/menus", tags=["Menus"])

can_view = Depends(require_permission(SystemPermission.MENUS_VIEW.value))
can_manage = Depends(require_permission(SystemPermission.MENUS_MANAGE.value))


@router.get(
    "/my-tree",
    response_model=ApiResponse[list[MenuNodeResponse]],
    summary="Caller's menu tree",
    description="Visible menus the caller can view, nested, with merged access flags.",
)
async def my_menu_tree(
    principal: CurrentPrincipal, rbac_service: RbacServiceDep
) -> ApiResponse[list[MenuNodeResponse]]:
    tree = await rbac_service.menu_tree_for(principal.user_id)
    return ApiResponse(data=[MenuNodeResponse.model_validate(node) for node in tree])


@router.get(
    "/access/{menu_code}",
    response_model=ApiResponse[AccessFlagsResponse],
    summary="Caller's flags on a menu",
    description="403 unless one of the caller's roles grants view on the menu.",
)
async def menu_access(
    menu_code: str,
    flags: AccessFlags = Depends(require_menu_access()),
) -> ApiResponse[AccessFlagsResponse]:
    return ApiResponse(data=AccessFlagsResponse(**flags.to_dict()))


@router.get(
    "/tree",
    response_model=ApiResponse[list[MenuNodeResponse]],
    summary="Full menu tree",
    dependencies=[can_view],
)
async def full_tree(menu_service: MenuServiceDep) -> ApiResponse[list[MenuNodeResponse]]:
    tree = await menu_service.full_tree()
    return ApiResponse(data=[MenuNodeResponse.model_validate(node) for node in tree])


@router.get(
    "",
    response_model=ApiResponse[list[MenuResponse]],
    summary="List menus",
    dependencies=[can_view],
)
async def list_menus(menu_service: MenuServiceDep) -> ApiResponse[list[MenuResponse]]:
    menus = await menu_service.list_menus()
    return ApiResponse(data=[MenuResponse.model_validate(menu) for menu in menus])


@router.get(
    "/{menu_id}",
    response_model=ApiResponse[MenuResponse],
    summary="Get menu",
    dependencies=[can_view],
)
async def get_menu(menu_id: int, menu_service: MenuServiceDep) -> ApiResponse[MenuResponse]:
    return ApiResponse(data=MenuResponse.model_validate(await menu_service.get_menu(menu_id)))


@router.post(
    "",
    response_model=ApiResponse[MenuResponse],
    status_code=status.HTTP_201_CREATED,
    summary="Create menu",
    dependencies=[can_manage],
)
async def create_menu(
    request: Request,
    data: MenuCreate,
    principal: CurrentPrincipal,
    menu_service: MenuServiceDep,
) -> ApiResponse[MenuResponse]:
    """
    Create a menu node.

    Raises:
        400: Parent does not exist
        409: Menu code already exists
    """
    menu = await menu_service.create_menu(data, created_by=principal.user_id)
    await record_activity(request, principal, ActivityAction.CREATE, "menu", menu.id, "Menu created")
    return ApiResponse(message="Menu created", data=MenuResponse.model_validate(menu))


@router.put(
    "/reorder",
    response_model=ApiResponse[list[MenuResponse]],
    summary="Reorder menus",
    dependencies=[can_manage],
)
async def reorder_menus(
    request: Request,
    data: MenuReorderRequest,
    principal: CurrentPrincipal,
    menu_service: MenuServiceDep,
) -> ApiResponse[list[MenuResponse]]:
    menus = await menu_service.reorder(data.items, updated_by=principal.user_id)
    await record_activity(
        request, principal, ActivityAction.UPDATE, "menu", None, f"{len(menus)} menus reordered"
    )
    return ApiResponse(
        message="Menus reordered", data=[MenuResponse.model_validate(menu) for menu in menus]
    )


@router.put(
    "/{menu_id}",
    response_model=ApiResponse[MenuResponse],
    summary="Update menu",
    dependencies=[can_manage],
)
async def update_menu(
    request: Request,
    menu_id: int,
    data: MenuUpdate,
    principal: CurrentPrincipal,
    menu_service: MenuServiceDep,
) -> ApiResponse[MenuResponse]:
    """
    Update a menu node.

    Raises:
        400: New parent is the menu itself, a descendant, or missing
        404: Menu not found
        409: New code already exists
    """
    menu = await menu_service.update_menu(menu_id, data, updated_by=principal.user_id)
    await record_activity(request, principal, ActivityAction.UPDATE, "menu", menu_id, "Menu updated")
    return ApiResponse(message="Menu updated", data=MenuResponse.model_validate(menu))


@router.delete(
    "/{menu_id}",
    response_model=ApiResponse[None],
    summary="Delete menu",
    dependencies=[can_manage],
)
async def delete_menu(
    request: Request,
    menu_id: int,
    principal: CurrentPrincipal,
    menu_service: MenuServiceDep,
) -> ApiResponse[None]:
    await menu_service.delete_menu(menu_id, deleted_by=principal.user_id)
    await record_activity(request, principal, ActivityAction.DELETE, "menu", menu_id, "Menu deleted")
    return ApiResponse(message="Menu deleted")
