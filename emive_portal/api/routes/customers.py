from __future__ import annotations

from typing import Literal, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status

from emive_portal.api.dependencies.auth import get_current_user, require_admin
from emive_portal.api.dependencies.database import require_database
from emive_portal.repositories import customers as customer_repo
from emive_portal.schemas.customers import (
    CustomerCreate,
    CustomerDocumentCreate,
    CustomerDocumentResponse,
    CustomerPage,
    CustomerResponse,
    CustomerUpdate,
)
from emive_portal.services import audit as audit_service
from emive_portal.services import customers as customer_service

router = APIRouter(prefix="/api/customers", tags=["Customer Portfolio"])


def _column_filters(request: Request) -> dict[str, str]:
    """Collect ``filter_<column>=value`` query parameters."""

    filters: dict[str, str] = {}
    for key, value in request.query_params.items():
        if not key.startswith("filter_"):
            continue
        column = key[len("filter_") :]
        if column not in customer_service.FILTERABLE_COLUMNS:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Unsupported filter column {column}",
            )
        filters[column] = value
    return filters


async def _get_customer_or_404(customer_id: int) -> dict:
    customer = await customer_repo.get_customer_by_id(customer_id)
    if not customer:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Customer not found")
    return customer


@router.get("", response_model=CustomerPage)
async def list_customers(
    request: Request,
    search: Optional[str] = Query(default=None),
    sort_column: Optional[str] = Query(default=None),
    sort_direction: Optional[Literal["asc", "desc"]] = Query(default=None),
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=50, ge=1, le=500),
    _: None = Depends(require_database),
    __: dict = Depends(get_current_user),
):
    rows = await customer_repo.list_customers()
    filtered = customer_service.apply_filters(
        rows, search=search, column_filters=_column_filters(request)
    )
    try:
        ordered = customer_service.sort_customers(filtered, sort_column, sort_direction)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    result = customer_service.paginate(ordered, page, page_size)
    result["items"] = [customer_service.with_termination(row) for row in result["items"]]
    return result


@router.get("/distinct/{column}", response_model=list[str])
async def list_distinct_values(
    column: str,
    _: None = Depends(require_database),
    __: dict = Depends(get_current_user),
):
    rows = await customer_repo.list_customers()
    try:
        return customer_service.distinct_values(rows, column)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc


@router.get("/{customer_id}", response_model=CustomerResponse)
async def get_customer(
    customer_id: int,
    _: None = Depends(require_database),
    __: dict = Depends(get_current_user),
):
    customer = await _get_customer_or_404(customer_id)
    enriched = customer_service.with_termination(customer)
    enriched["documents"] = await customer_repo.list_documents(customer_id)
    return enriched


@router.post("", response_model=CustomerResponse, status_code=status.HTTP_201_CREATED)
async def create_customer(
    payload: CustomerCreate,
    request: Request,
    _: None = Depends(require_database),
    current_user: dict = Depends(require_admin),
):
    if await customer_repo.get_customer_by_contrato(payload.contrato):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Contrato already registered")
    created = await customer_repo.create_customer(**payload.model_dump(exclude_none=True))
    await audit_service.log_action(
        action="customer.create",
        user_id=current_user["id"],
        entity_type="customer",
        entity_id=created["id"],
        new_value={"contrato": created["contrato"], "razao_social": created["razao_social"]},
        request=request,
    )
    return customer_service.with_termination(created)


@router.patch("/{customer_id}", response_model=CustomerResponse)
async def update_customer(
    customer_id: int,
    payload: CustomerUpdate,
    request: Request,
    _: None = Depends(require_database),
    current_user: dict = Depends(require_admin),
):
    existing = await _get_customer_or_404(customer_id)
    data = payload.model_dump(exclude_unset=True)
    new_contrato = data.get("contrato")
    if new_contrato and new_contrato != existing["contrato"]:
        if await customer_repo.get_customer_by_contrato(new_contrato):
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Contrato already registered")
    updated = await customer_repo.update_customer(customer_id, **data)
    await audit_service.log_action(
        action="customer.update",
        user_id=current_user["id"],
        entity_type="customer",
        entity_id=customer_id,
        previous_value={key: existing.get(key) for key in data},
        new_value=data,
        request=request,
    )
    return customer_service.with_termination(updated)


@router.delete("/{customer_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_customer(
    customer_id: int,
    request: Request,
    _: None = Depends(require_database),
    current_user: dict = Depends(require_admin),
):
    existing = await _get_customer_or_404(customer_id)
    await customer_repo.delete_customer(customer_id)
    await audit_service.log_action(
        action="customer.delete",
        user_id=current_user["id"],
        entity_type="customer",
        entity_id=customer_id,
        previous_value={"contrato": existing["contrato"], "razao_social": existing["razao_social"]},
        request=request,
    )
    return None


@router.get("/{customer_id}/documents", response_model=list[CustomerDocumentResponse])
async def list_customer_documents(
    customer_id: int,
    _: None = Depends(require_database),
    __: dict = Depends(get_current_user),
):
    await _get_customer_or_404(customer_id)
    return await customer_repo.list_documents(customer_id)


@router.post(
    "/{customer_id}/documents",
    response_model=CustomerDocumentResponse,
    status_code=status.HTTP_201_CREATED,
)
async def attach_customer_document(
    customer_id: int,
    payload: CustomerDocumentCreate,
    _: None = Depends(require_database),
    current_user: dict = Depends(get_current_user),
):
    await _get_customer_or_404(customer_id)
    return await customer_repo.create_document(
        customer_id=customer_id,
        created_by=current_user["id"],
        **payload.model_dump(),
    )


@router.delete("/{customer_id}/documents/{document_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_customer_document(
    customer_id: int,
    document_id: int,
    _: None = Depends(require_database),
    __: dict = Depends(get_current_user),
):
    document = await customer_repo.get_document(document_id)
    if not document or int(document["customer_id"]) != customer_id:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Document not found")
    await customer_repo.delete_document(document_id)
    return None
