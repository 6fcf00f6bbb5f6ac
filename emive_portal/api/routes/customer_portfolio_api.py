"""Integration API over the customer portfolio, authenticated with ``x-api-key``."""
from __future__ import annotations

from datetime import date
from typing import Any, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status

from emive_portal.api.dependencies.api_keys import require_customer_api_key
from emive_portal.api.dependencies.database import require_database
from emive_portal.core.logging import log_info
from emive_portal.repositories import customers as customer_repo
from emive_portal.schemas.customers import (
    CustomerListQuery,
    ExternalCustomerCreate,
    ExternalCustomerDelete,
    ExternalCustomerUpdate,
    ExternalCustomerList,
    ExternalDocumentCreate,
    ExternalDocumentDelete,
)
from emive_portal.services import audit as audit_service

router = APIRouter(prefix="/api/customer-portfolio", tags=["Customer Portfolio API"])


async def _list_response(query: CustomerListQuery) -> dict[str, Any]:
    if query.customer_id is not None:
        customer = await customer_repo.get_customer_by_id(query.customer_id)
        if not customer:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Customer not found")
        customer["documents"] = await customer_repo.list_documents(query.customer_id)
        return {"success": True, "data": customer}

    filters = query.model_dump(exclude={"customer_id", "include_documents", "limit", "offset"})
    rows, total = await customer_repo.search_customers(
        limit=query.limit,
        offset=query.offset,
        **filters,
    )
    if query.include_documents and rows:
        documents = await customer_repo.list_documents_for_customers([row["id"] for row in rows])
        for row in rows:
            row["documents"] = documents.get(row["id"], [])
    return ExternalCustomerList(
        data=rows,
        pagination={
            "total": total,
            "limit": query.limit,
            "offset": query.offset,
            "hasMore": query.offset + len(rows) < total,
        },
    ).model_dump(mode="json")


@router.get("")
async def list_customers(
    customer_id: Optional[int] = Query(default=None),
    search: Optional[str] = Query(default=None),
    filial: Optional[str] = Query(default=None),
    contrato: Optional[str] = Query(default=None),
    sistema: Optional[str] = Query(default=None),
    app: Optional[str] = Query(default=None),
    tipo: Optional[str] = Query(default=None),
    noc: Optional[str] = Query(default=None),
    transbordo: Optional[bool] = Query(default=None),
    gateway: Optional[bool] = Query(default=None),
    data_ativacao_inicio: Optional[date] = Query(default=None),
    data_ativacao_fim: Optional[date] = Query(default=None),
    include_documents: bool = Query(default=False),
    limit: int = Query(default=100, ge=1, le=1000),
    offset: int = Query(default=0, ge=0),
    _: None = Depends(require_database),
    __: str = Depends(require_customer_api_key),
):
    query = CustomerListQuery(
        customer_id=customer_id,
        search=search,
        filial=filial,
        contrato=contrato,
        sistema=sistema,
        app=app,
        tipo=tipo,
        noc=noc,
        transbordo=transbordo,
        gateway=gateway,
        data_ativacao_inicio=data_ativacao_inicio,
        data_ativacao_fim=data_ativacao_fim,
        include_documents=include_documents,
        limit=limit,
        offset=offset,
    )
    return await _list_response(query)


@router.post("")
async def query_customers(
    query: CustomerListQuery,
    _: None = Depends(require_database),
    __: str = Depends(require_customer_api_key),
):
    return await _list_response(query)


@router.put("", status_code=status.HTTP_201_CREATED)
async def create_customer(
    payload: ExternalCustomerCreate,
    request: Request,
    _: None = Depends(require_database),
    api_key: str = Depends(require_customer_api_key),
):
    if await customer_repo.get_customer_by_contrato(payload.contrato):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Contrato already registered")
    created = await customer_repo.create_customer(**payload.model_dump(exclude_none=True))
    await audit_service.log_action(
        action="customer_api.create",
        user_id=None,
        entity_type="customer",
        entity_id=created["id"],
        new_value={"contrato": created["contrato"], "razao_social": created["razao_social"]},
        request=request,
        api_key=api_key,
    )
    log_info("Customer created through API", customer_id=created["id"])
    return {"success": True, "data": created}


@router.patch("")
async def update_customer(
    payload: ExternalCustomerUpdate,
    request: Request,
    _: None = Depends(require_database),
    api_key: str = Depends(require_customer_api_key),
):
    existing = await customer_repo.get_customer_by_id(payload.customer_id)
    if not existing:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Customer not found")
    data = payload.model_dump(exclude_unset=True, exclude={"customer_id"})
    updated = await customer_repo.update_customer(payload.customer_id, **data)
    await audit_service.log_action(
        action="customer_api.update",
        user_id=None,
        entity_type="customer",
        entity_id=payload.customer_id,
        previous_value={key: existing.get(key) for key in data},
        new_value=data,
        request=request,
        api_key=api_key,
    )
    return {"success": True, "data": updated}


@router.delete("")
async def delete_customer(
    payload: ExternalCustomerDelete,
    request: Request,
    _: None = Depends(require_database),
    api_key: str = Depends(require_customer_api_key),
):
    existing = await customer_repo.get_customer_by_id(payload.customer_id)
    if not existing:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Customer not found")
    documents = await customer_repo.list_documents(payload.customer_id)
    for document in documents:
        await customer_repo.delete_document(document["id"])
    await customer_repo.delete_customer(payload.customer_id)
    await audit_service.log_action(
        action="customer_api.delete",
        user_id=None,
        entity_type="customer",
        entity_id=payload.customer_id,
        previous_value={"contrato": existing["contrato"], "documents": len(documents)},
        request=request,
        api_key=api_key,
    )
    return {"success": True, "message": "Customer and documents deleted successfully"}


@router.put("/documents", status_code=status.HTTP_201_CREATED)
async def create_document(
    payload: ExternalDocumentCreate,
    request: Request,
    _: None = Depends(require_database),
    api_key: str = Depends(require_customer_api_key),
):
    if not await customer_repo.get_customer_by_id(payload.customer_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Customer not found")
    document = await customer_repo.create_document(**payload.model_dump())
    await audit_service.log_action(
        action="customer_api.document_create",
        user_id=None,
        entity_type="customer_document",
        entity_id=document["id"],
        new_value={"customer_id": payload.customer_id, "nome_arquivo": payload.nome_arquivo},
        request=request,
        api_key=api_key,
    )
    return {"success": True, "data": document}


@router.delete("/documents")
async def delete_document(
    payload: ExternalDocumentDelete,
    request: Request,
    _: None = Depends(require_database),
    api_key: str = Depends(require_customer_api_key),
):
    document = await customer_repo.get_document(payload.document_id)
    if not document:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Document not found")
    await customer_repo.delete_document(payload.document_id)
    await audit_service.log_action(
        action="customer_api.document_delete",
        user_id=None,
        entity_type="customer_document",
        entity_id=payload.document_id,
        previous_value={"customer_id": document["customer_id"], "nome_arquivo": document["nome_arquivo"]},
        request=request,
        api_key=api_key,
    )
    return {"success": True, "message": "Document deleted successfully"}
