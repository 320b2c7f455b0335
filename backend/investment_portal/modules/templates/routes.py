from __future__ import annotations

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from investment_portal.core.context import RequestContext
from investment_portal.core.db.session import get_db
from investment_portal.core.security.dependencies import get_context
from investment_portal.modules.templates import service
from investment_portal.modules.templates.schemas import (
    RationaleCreate,
    RationaleGenerate,
    RationaleOut,
    RationaleUpdate,
    TemplateCreate,
    TemplateOut,
    TemplateUpdate,
)
from investment_portal.services.llm_service import LLMServiceClient, get_llm_service_client
from investment_portal.shared.enums import TemplateType

router = APIRouter(tags=["templates"])


@router.get("/templates", response_model=list[TemplateOut])
def list_templates(
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(get_context),
    type: TemplateType | None = Query(default=None),
) -> list[TemplateOut]:
    return service.list_templates(db, type=type)


@router.get("/templates/{template_id}", response_model=TemplateOut)
def get_template(
    template_id: int,
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(get_context),
) -> TemplateOut:
    return service.get_template(db, template_id=template_id)


@router.post("/templates", response_model=TemplateOut, status_code=status.HTTP_201_CREATED)
def create_template(
    payload: TemplateCreate,
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(get_context),
) -> TemplateOut:
    return service.create_template(db, ctx=ctx, data=payload)


@router.put("/templates/{template_id}", response_model=TemplateOut)
def update_template(
    template_id: int,
    payload: TemplateUpdate,
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(get_context),
) -> TemplateOut:
    return service.update_template(db, ctx=ctx, template_id=template_id, patch=payload)


@router.delete("/templates/{template_id}")
def delete_template(
    template_id: int,
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(get_context),
) -> dict[str, str]:
    service.delete_template(db, ctx=ctx, template_id=template_id)
    return {"message": "Template deleted successfully"}


@router.get("/investments/{investment_id}/rationales", response_model=list[RationaleOut])
def list_rationales(
    investment_id: int,
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(get_context),
) -> list[RationaleOut]:
    return service.list_rationales(db, investment_id=investment_id)


@router.post("/investments/{investment_id}/rationales", response_model=RationaleOut, status_code=status.HTTP_201_CREATED)
def create_rationale(
    investment_id: int,
    payload: RationaleCreate,
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(get_context),
) -> RationaleOut:
    return service.create_rationale(db, ctx=ctx, investment_id=investment_id, data=payload)


@router.post(
    "/investments/{investment_id}/rationales/generate",
    response_model=RationaleOut,
    status_code=status.HTTP_201_CREATED,
)
def generate_rationale(
    investment_id: int,
    payload: RationaleGenerate,
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(get_context),
    llm: LLMServiceClient = Depends(get_llm_service_client),
) -> RationaleOut:
    return service.generate_rationale(db, ctx=ctx, llm=llm, investment_id=investment_id, template_id=payload.template_id)


@router.put("/investments/{investment_id}/rationales/{rationale_id}", response_model=RationaleOut)
def update_rationale(
    investment_id: int,
    rationale_id: int,
    payload: RationaleUpdate,
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(get_context),
) -> RationaleOut:
    return service.update_rationale(
        db, ctx=ctx, investment_id=investment_id, rationale_id=rationale_id, content=payload.content
    )


@router.delete("/investments/{investment_id}/rationales/{rationale_id}")
def delete_rationale(
    investment_id: int,
    rationale_id: int,
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(get_context),
) -> dict[str, str]:
    service.delete_rationale(db, ctx=ctx, investment_id=investment_id, rationale_id=rationale_id)
    return {"message": "Rationale deleted successfully"}
