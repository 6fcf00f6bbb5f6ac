from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status

from emive_portal.api.dependencies.auth import get_current_user, require_catalog_manager
from emive_portal.api.dependencies.database import require_database
from emive_portal.repositories import catalog as catalog_repo
from emive_portal.schemas.catalog import (
    ActiveToggle,
    CatalogKit,
    CatalogProduct,
    KitCreate,
    KitUpdate,
    PricingApplyRequest,
    PricingApplyResponse,
    PricingPreview,
    PricingRule,
    PricingRuleUpdate,
    ProductCreate,
    ProductUpdate,
)
from emive_portal.services import audit as audit_service
from emive_portal.services import catalog as catalog_service
from emive_portal.services import pricing as pricing_service

router = APIRouter(prefix="/api/catalog", tags=["Catalog"])


async def _get_product_or_404(product_id: int) -> dict:
    product = await catalog_repo.get_product(product_id)
    if not product:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Product not found")
    return product


async def _get_kit_or_404(kit_id: int) -> dict:
    kit = await catalog_service.get_kit(kit_id)
    if not kit:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Kit not found")
    return kit


@router.get("/products", response_model=list[CatalogProduct])
async def list_products(
    categoria: Optional[str] = Query(default=None),
    ativo: Optional[bool] = Query(default=None),
    search: Optional[str] = Query(default=None),
    _: None = Depends(require_database),
    __: dict = Depends(get_current_user),
):
    return await catalog_repo.list_products(categoria=categoria, ativo=ativo, search=search)


@router.post("/products", response_model=CatalogProduct, status_code=status.HTTP_201_CREATED)
async def create_product(
    payload: ProductCreate,
    request: Request,
    _: None = Depends(require_database),
    current_user: dict = Depends(require_catalog_manager),
):
    try:
        product = await catalog_service.create_product(payload.model_dump(exclude_none=True), current_user)
    except catalog_service.CatalogError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    await audit_service.log_action(
        action="catalog.product_create",
        user_id=current_user["id"],
        entity_type="orcamento_produto",
        entity_id=product["id"],
        new_value={"nome": product["nome"], "preco_unitario": product["preco_unitario"]},
        request=request,
    )
    return product


@router.patch("/products/{product_id}", response_model=CatalogProduct)
async def update_product(
    product_id: int,
    payload: ProductUpdate,
    _: None = Depends(require_database),
    current_user: dict = Depends(require_catalog_manager),
):
    product = await _get_product_or_404(product_id)
    try:
        return await catalog_service.update_product(
            product, payload.model_dump(exclude_unset=True), current_user
        )
    except catalog_service.CatalogError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc


@router.post("/products/{product_id}/active", response_model=CatalogProduct)
async def set_product_active(
    product_id: int,
    payload: ActiveToggle,
    _: None = Depends(require_database),
    current_user: dict = Depends(require_catalog_manager),
):
    product = await _get_product_or_404(product_id)
    return await catalog_service.update_product(product, {"ativo": payload.ativo}, current_user)


@router.delete("/products/{product_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_product(
    product_id: int,
    request: Request,
    _: None = Depends(require_database),
    current_user: dict = Depends(require_catalog_manager),
):
    product = await _get_product_or_404(product_id)
    await catalog_repo.delete_product(product_id)
    await audit_service.log_action(
        action="catalog.product_delete",
        user_id=current_user["id"],
        entity_type="orcamento_produto",
        entity_id=product_id,
        previous_value={"nome": product["nome"]},
        request=request,
    )
    return None


@router.get("/kits", response_model=list[CatalogKit])
async def list_kits(
    ativo: Optional[bool] = Query(default=None),
    _: None = Depends(require_database),
    __: dict = Depends(get_current_user),
):
    return await catalog_service.list_kits(ativo=ativo)


@router.get("/kits/{kit_id}", response_model=CatalogKit)
async def get_kit(
    kit_id: int,
    _: None = Depends(require_database),
    __: dict = Depends(get_current_user),
):
    return await _get_kit_or_404(kit_id)


@router.post("/kits", response_model=CatalogKit, status_code=status.HTTP_201_CREATED)
async def create_kit(
    payload: KitCreate,
    _: None = Depends(require_database),
    current_user: dict = Depends(require_catalog_manager),
):
    fields = payload.model_dump(exclude={"itens"}, exclude_none=True)
    items = [item.model_dump() for item in payload.itens]
    try:
        return await catalog_service.save_kit(None, fields, items, current_user)
    except catalog_service.CatalogError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc


@router.patch("/kits/{kit_id}", response_model=CatalogKit)
async def update_kit(
    kit_id: int,
    payload: KitUpdate,
    _: None = Depends(require_database),
    current_user: dict = Depends(require_catalog_manager),
):
    kit = await _get_kit_or_404(kit_id)
    fields = payload.model_dump(exclude={"itens"}, exclude_unset=True)
    items = [item.model_dump() for item in payload.itens] if payload.itens is not None else None
    try:
        return await catalog_service.save_kit(kit, fields, items, current_user)
    except catalog_service.CatalogError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc


@router.post("/kits/{kit_id}/active", response_model=CatalogKit)
async def set_kit_active(
    kit_id: int,
    payload: ActiveToggle,
    _: None = Depends(require_database),
    current_user: dict = Depends(require_catalog_manager),
):
    kit = await _get_kit_or_404(kit_id)
    return await catalog_service.save_kit(kit, {"ativo": payload.ativo}, None, current_user)


@router.delete("/kits/{kit_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_kit(
    kit_id: int,
    _: None = Depends(require_database),
    __: dict = Depends(require_catalog_manager),
):
    await _get_kit_or_404(kit_id)
    await catalog_repo.delete_kit(kit_id)
    return None


@router.get("/pricing-rules", response_model=list[PricingRule])
async def list_pricing_rules(
    _: None = Depends(require_database),
    __: dict = Depends(get_current_user),
):
    return await catalog_repo.list_pricing_rules()


@router.get("/pricing-rules/preview", response_model=PricingPreview)
async def preview_pricing(
    base: float = Query(default=pricing_service.DEFAULT_PREVIEW_BASE, ge=0),
    _: None = Depends(require_database),
    __: dict = Depends(get_current_user),
):
    rules = await catalog_repo.list_pricing_rules()
    return {"base": base, **pricing_service.preview(rules, base=base)}


@router.patch("/pricing-rules/{rule_id}", response_model=PricingRule)
async def update_pricing_rule(
    rule_id: int,
    payload: PricingRuleUpdate,
    request: Request,
    _: None = Depends(require_database),
    current_user: dict = Depends(require_catalog_manager),
):
    try:
        rule = await pricing_service.update_rule(rule_id, payload.percentual)
    except LookupError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except pricing_service.PricingRuleError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    await audit_service.log_action(
        action="catalog.pricing_rule_update",
        user_id=current_user["id"],
        entity_type="orcamento_regra",
        entity_id=rule_id,
        new_value={"percentual": payload.percentual},
        request=request,
    )
    return rule


@router.post("/pricing-rules/apply", response_model=PricingApplyResponse)
async def apply_pricing_rules(
    payload: PricingApplyRequest,
    request: Request,
    _: None = Depends(require_database),
    current_user: dict = Depends(require_catalog_manager),
):
    updated = await pricing_service.apply_rules(payload.target)
    await audit_service.log_action(
        action="catalog.pricing_apply",
        user_id=current_user["id"],
        entity_type="orcamento_produto",
        metadata={"target": payload.target, "updated": updated},
        request=request,
    )
    return {"target": payload.target, "updated": updated}
