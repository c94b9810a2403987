"""Calculation Routes — thin HTTP surface over CalculationService.

Invariants:
    - Writes require X-User-Id (401 otherwise); reads are anonymous
    - Domain/infrastructure errors propagate to the global CalcTreeError handler
    - Routes never touch persistence or cache directly

Design Decisions:
    - Identity from headers set by the upstream auth layer (no auth logic here)
    - Service injected via Depends(get_calculation_service): tests override the dependency
"""

import logging

from fastapi import APIRouter, Depends, Header, HTTPException, Response, status

from calctree.core.errors import ErrorContext, ResourceNotFoundError
from calctree.infrastructure.container import get_calculation_service
from calctree.schemas.calculation import (
    OperationCreate, OperationResponse, RootCreate, RootResponse,
)
from calctree.services.calculation_service import (
    CalculationService, CreateOperationInput, CreateRootInput,
)

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/calculations", tags=["calculations"])


class CurrentUser:
    def __init__(self, user_id: str, username: str | None):
        self.user_id = user_id
        self.username = username


async def get_current_user(
    x_user_id: str | None = Header(None),
    x_username: str | None = Header(None),
) -> CurrentUser:
    if not x_user_id or not x_user_id.strip():
        raise HTTPException(
            status.HTTP_401_UNAUTHORIZED,
            detail={
                "error": {
                    "code": "UNAUTHENTICATED",
                    "message": "X-User-Id header is required",
                    "category": "validation",
                    "severity": "error",
                },
            },
        )
    return CurrentUser(x_user_id.strip(), x_username)


@router.get("/tree", response_model=list[RootResponse])
async def get_tree(
    service: CalculationService = Depends(get_calculation_service),
):
    """Every calculation tree, newest root first."""
    roots = await service.get_full_tree()
    return [RootResponse.from_entity(root) for root in roots]


@router.get("/roots/{root_id}", response_model=RootResponse)
async def get_root(
    root_id: str,
    service: CalculationService = Depends(get_calculation_service),
):
    root = await service.get_root_by_id(root_id)
    if root is None:
        raise ResourceNotFoundError(
            "CalculationRoot", root_id, ErrorContext(root_id=root_id),
        )
    return RootResponse.from_entity(root)


@router.get("/operations/{operation_id}", response_model=OperationResponse)
async def get_operation(
    operation_id: str,
    service: CalculationService = Depends(get_calculation_service),
):
    """One operation; its replies are read through its root."""
    operation = await service.get_operation_by_id(operation_id)
    if operation is None:
        raise ResourceNotFoundError(
            "CalculationOperation", operation_id,
            ErrorContext(operation_id=operation_id),
        )
    return OperationResponse.from_entity(operation)


@router.post(
    "/roots", response_model=RootResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_root(
    body: RootCreate,
    user: CurrentUser = Depends(get_current_user),
    service: CalculationService = Depends(get_calculation_service),
):
    """Start a new calculation tree."""
    root = await service.create_root(CreateRootInput(
        value=body.value, user_id=user.user_id, username=user.username,
    ))
    return RootResponse.from_entity(root)


@router.post(
    "/operations", response_model=OperationResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_operation(
    body: OperationCreate,
    user: CurrentUser = Depends(get_current_user),
    service: CalculationService = Depends(get_calculation_service),
):
    """Reply to a root or to another operation."""
    operation = await service.create_operation(CreateOperationInput(
        operator=body.operator,
        operand=body.operand,
        parent_root_id=body.parent_root_id,
        parent_operation_id=body.parent_operation_id,
        user_id=user.user_id,
        username=user.username,
    ))
    return OperationResponse.from_entity(operation)


@router.delete("/roots/{root_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_root(
    root_id: str,
    user: CurrentUser = Depends(get_current_user),
    service: CalculationService = Depends(get_calculation_service),
):
    """Delete a tree with all of its operations."""
    await service.delete_root(root_id)
    logger.info(
        f"Root {root_id} deleted by {user.user_id}", extra={"root_id": root_id},
    )
    return Response(status_code=status.HTTP_204_NO_CONTENT)
