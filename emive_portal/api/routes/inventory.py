from __future__ import annotations

import asyncio
from typing import Optional

from fastapi import APIRouter, Depends, File, HTTPException, Query, Request, UploadFile, status
from fastapi.responses import StreamingResponse

from emive_portal.api.dependencies.auth import get_current_user, require_stock_importer
from emive_portal.api.dependencies.database import require_database
from emive_portal.core.logging import log_debug
from emive_portal.repositories import inventory as inventory_repo
from emive_portal.schemas.inventory import (
    ImportHistoryEntry,
    ImportResult,
    LocationResponse,
    ProductCreate,
    ProductResponse,
    StockLevelImport,
    StockOverview,
    StockResponse,
    StockValueUpdate,
)
from emive_portal.services import audit as audit_service
from emive_portal.services import inventory as inventory_service
from emive_portal.services import inventory_export
from emive_portal.services import inventory_import

router = APIRouter(prefix="/api/inventory", tags=["Inventory"])

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


@router.get("/locations", response_model=list[LocationResponse])
async def list_locations(
    _: None = Depends(require_database),
    __: dict = Depends(get_current_user),
):
    return await inventory_repo.list_locations()


@router.get("", response_model=StockOverview)
async def stock_overview(
    search: Optional[str] = Query(default=None),
    status_filter: Optional[str] = Query(default=None, alias="status"),
    cidade: Optional[str] = Query(default=None),
    tipo: Optional[str] = Query(default=None),
    _: None = Depends(require_database),
    __: dict = Depends(get_current_user),
):
    grouped, locations = await inventory_service.load_grouped()
    checked = inventory_service.filter_locations(locations, cidade=cidade, tipo=tipo)
    items = inventory_service.filter_grouped(
        grouped, locations, search=search, status=status_filter, cidade=cidade, tipo=tipo
    )
    critical = inventory_service.critical_items(items, locations, cidade=cidade, tipo=tipo)
    return {
        "locations": locations,
        "checked_locations": [location["id"] for location in checked],
        "items": items,
        "critical_count": len(critical),
        "stats": inventory_service.stock_stats(grouped),
        "cidades": inventory_service.distinct_values(locations, "cidade"),
        "tipos": inventory_service.distinct_values(locations, "tipo"),
    }


@router.get("/critical/export")
async def export_critical_items(
    request: Request,
    search: Optional[str] = Query(default=None),
    status_filter: Optional[str] = Query(default=None, alias="status"),
    cidade: Optional[str] = Query(default=None),
    tipo: Optional[str] = Query(default=None),
    _: None = Depends(require_database),
    current_user: dict = Depends(get_current_user),
):
    grouped, locations = await inventory_service.load_grouped()
    items = inventory_service.filter_grouped(
        grouped, locations, search=search, status=status_filter, cidade=cidade, tipo=tipo
    )
    critical = inventory_service.critical_items(items, locations, cidade=cidade, tipo=tipo)
    if not critical:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="No critical items to export with the current filters",
        )
    columns = inventory_service.filter_locations(locations, cidade=cidade, tipo=tipo)
    content = inventory_export.build_critical_workbook(critical, columns)
    filename = inventory_export.critical_filename(cidade=cidade, tipo=tipo)
    await audit_service.log_action(
        action="stock.export_critical",
        user_id=current_user["id"],
        entity_type="estoque",
        metadata={"filename": filename, "record_count": len(critical)},
        request=request,
    )
    return StreamingResponse(
        iter([content]),
        media_type=XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": f"attachment; filename={filename}"},
    )


@router.put("/stock/current", response_model=StockResponse)
async def update_current_stock(
    payload: StockValueUpdate,
    request: Request,
    _: None = Depends(require_database),
    current_user: dict = Depends(get_current_user),
):
    try:
        stock = await inventory_service.update_current_stock(
            payload.item_id, payload.local_estoque_id, payload.value
        )
    except inventory_service.InventoryError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    await audit_service.log_action(
        action="stock.update_current",
        user_id=current_user["id"],
        entity_type="estoque",
        entity_id=stock["id"],
        new_value={"estoque_atual": payload.value},
        request=request,
    )
    return stock


@router.put("/stock/minimum", response_model=StockResponse)
async def update_minimum_stock(
    payload: StockValueUpdate,
    request: Request,
    _: None = Depends(require_database),
    current_user: dict = Depends(require_stock_importer),
):
    try:
        stock = await inventory_service.update_minimum_stock(
            payload.item_id, payload.local_estoque_id, payload.value
        )
    except inventory_service.InventoryError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    await audit_service.log_action(
        action="stock.update_minimum",
        user_id=current_user["id"],
        entity_type="estoque",
        entity_id=stock["id"],
        new_value={"estoque_minimo": payload.value},
        request=request,
    )
    return stock


@router.post("/products", response_model=ProductResponse, status_code=status.HTTP_201_CREATED)
async def create_product(
    payload: ProductCreate,
    request: Request,
    _: None = Depends(require_database),
    current_user: dict = Depends(get_current_user),
):
    try:
        item = await inventory_service.create_product(payload.codigo, payload.modelo)
    except inventory_service.DuplicateProductError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    except inventory_service.InventoryError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    await audit_service.log_action(
        action="stock.create_product",
        user_id=current_user["id"],
        entity_type="estoque_item",
        entity_id=item["id"],
        new_value={"codigo": item["codigo"], "modelo": item["modelo"]},
        request=request,
    )
    return item


@router.post("/imports/minimum", response_model=ImportResult)
async def import_minimum_stock(
    request: Request,
    file: UploadFile = File(...),
    _: None = Depends(require_database),
    current_user: dict = Depends(require_stock_importer),
):
    try:
        filename = inventory_import.validate_filename(file.filename)
        content = await file.read()
        items = await asyncio.to_thread(inventory_import.parse_minimum_workbook, content)

        def _progress(processed: int, total: int) -> None:
            log_debug("Minimum stock import progress", processed=processed, total=total)

        result = await inventory_import.import_minimums(
            items, filename=filename, user_id=current_user["id"], progress=_progress
        )
    except inventory_import.StockImportError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    await audit_service.log_action(
        action="stock.import_minimum",
        user_id=current_user["id"],
        entity_type="estoque_importacao",
        metadata={"filename": filename, **result},
        request=request,
    )
    return result


@router.post("/imports/levels", response_model=ImportResult)
async def import_stock_levels(
    payload: StockLevelImport,
    request: Request,
    _: None = Depends(require_database),
    current_user: dict = Depends(require_stock_importer),
):
    try:
        result = await inventory_import.import_stock_levels(
            [row.model_dump() for row in payload.stockRows],
            filename=payload.fileName,
            user_id=current_user["id"],
        )
    except inventory_import.StockImportError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    await audit_service.log_action(
        action="stock.import_levels",
        user_id=current_user["id"],
        entity_type="estoque_importacao",
        metadata={"filename": payload.fileName, **result},
        request=request,
    )
    return result


@router.get("/imports", response_model=list[ImportHistoryEntry])
async def list_imports(
    limit: int = Query(default=50, ge=1, le=500),
    _: None = Depends(require_database),
    __: dict = Depends(get_current_user),
):
    return await inventory_repo.list_imports(limit)
