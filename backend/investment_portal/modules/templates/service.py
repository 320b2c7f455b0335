from __future__ import annotations

import structlog
from sqlalchemy import select
from sqlalchemy.orm import Session

from investment_portal.core.context import RequestContext
from investment_portal.core.db.audit import write_audit_event
from investment_portal.modules.requests.models import InvestmentRequest
from investment_portal.modules.requests.service import get_investment
from investment_portal.modules.templates.models import InvestmentRationale, Template
from investment_portal.modules.templates.schemas import RationaleCreate, TemplateCreate, TemplateUpdate
from investment_portal.services.llm_service import LLMServiceClient
from investment_portal.shared.enums import RationaleType, TemplateType
from investment_portal.shared.exceptions import ExternalServiceError, NotAuthorized, NotFound
from investment_portal.shared.utils import sa_model_to_dict

logger = structlog.get_logger(__name__)


def list_templates(db: Session, *, type: TemplateType | None = None, include_inactive: bool = False) -> list[Template]:
    stmt = select(Template)
    if type is not None:
        stmt = stmt.where(Template.type == type.value)
    if not include_inactive:
        stmt = stmt.where(Template.is_active.is_(True))
    return list(db.execute(stmt.order_by(Template.name.asc(), Template.id.asc())).scalars().all())


def get_template(db: Session, *, template_id: int) -> Template:
    t = db.get(Template, template_id)
    if t is None:
        raise NotFound("Template not found")
    return t


def _editable_template(db: Session, *, ctx: RequestContext, template_id: int) -> Template:
    actor = ctx.require_actor()
    t = get_template(db, template_id=template_id)
    if t.creator_id != actor.user_id and not actor.is_admin:
        raise NotAuthorized("Only the template's creator can change it")
    return t


def create_template(db: Session, *, ctx: RequestContext, data: TemplateCreate) -> Template:
    actor = ctx.require_actor()
    t = Template(
        name=data.name,
        type=data.type.value,
        investment_type=data.investment_type.value if data.investment_type else None,
        template_data=data.template_data.model_dump(),
        creator_id=actor.user_id,
        is_active=True,
    )
    db.add(t)
    db.flush()
    write_audit_event(
        db,
        ctx=ctx,
        action="templates.create",
        entity_type="template",
        entity_id=t.id,
        before=None,
        after=sa_model_to_dict(t),
    )
    db.commit()
    db.refresh(t)
    return t


def update_template(db: Session, *, ctx: RequestContext, template_id: int, patch: TemplateUpdate) -> Template:
    t = _editable_template(db, ctx=ctx, template_id=template_id)
    before = sa_model_to_dict(t)
    fields = patch.model_dump(exclude_unset=True)
    if "name" in fields and patch.name is not None:
        t.name = patch.name
    if "investment_type" in fields:
        t.investment_type = patch.investment_type.value if patch.investment_type else None
    if patch.template_data is not None:
        t.template_data = patch.template_data.model_dump()
    if patch.is_active is not None:
        t.is_active = patch.is_active
    db.flush()
    write_audit_event(
        db,
        ctx=ctx,
        action="templates.update",
        entity_type="template",
        entity_id=t.id,
        before=before,
        after=sa_model_to_dict(t),
    )
    db.commit()
    db.refresh(t)
    return t


def delete_template(db: Session, *, ctx: RequestContext, template_id: int) -> None:
    """Templates referenced by rationales are deactivated rather than removed."""
    t = _editable_template(db, ctx=ctx, template_id=template_id)
    before = sa_model_to_dict(t)
    in_use = db.execute(
        select(InvestmentRationale.id).where(InvestmentRationale.template_id == t.id).limit(1)
    ).scalar_one_or_none()
    if in_use is not None:
        t.is_active = False
        after = sa_model_to_dict(t)
    else:
        db.delete(t)
        after = None
    write_audit_event(
        db,
        ctx=ctx,
        action="templates.delete",
        entity_type="template",
        entity_id=template_id,
        before=before,
        after=after,
    )
    db.commit()


def list_rationales(db: Session, *, investment_id: int) -> list[InvestmentRationale]:
    get_investment(db, request_id=investment_id)
    stmt = (
        select(InvestmentRationale)
        .where(InvestmentRationale.investment_id == investment_id)
        .order_by(InvestmentRationale.created_at.desc(), InvestmentRationale.id.desc())
    )
    return list(db.execute(stmt).scalars().all())


def create_rationale(db: Session, *, ctx: RequestContext, investment_id: int, data: RationaleCreate) -> InvestmentRationale:
    actor = ctx.require_actor()
    get_investment(db, request_id=investment_id)
    if data.template_id is not None:
        get_template(db, template_id=data.template_id)
    r = InvestmentRationale(
        investment_id=investment_id,
        content=data.content,
        type=RationaleType.manual.value,
        template_id=data.template_id,
        author_id=actor.user_id,
    )
    db.add(r)
    db.commit()
    db.refresh(r)
    return r


def _owned_rationale(db: Session, *, ctx: RequestContext, investment_id: int, rationale_id: int) -> InvestmentRationale:
    actor = ctx.require_actor()
    r = db.get(InvestmentRationale, rationale_id)
    if r is None or r.investment_id != investment_id:
        raise NotFound("Rationale not found")
    if r.author_id != actor.user_id and not actor.is_admin:
        raise NotAuthorized("You can only change rationales you wrote")
    return r


def update_rationale(
    db: Session,
    *,
    ctx: RequestContext,
    investment_id: int,
    rationale_id: int,
    content: str,
) -> InvestmentRationale:
    r = _owned_rationale(db, ctx=ctx, investment_id=investment_id, rationale_id=rationale_id)
    r.content = content
    db.commit()
    db.refresh(r)
    return r


def delete_rationale(db: Session, *, ctx: RequestContext, investment_id: int, rationale_id: int) -> None:
    r = _owned_rationale(db, ctx=ctx, investment_id=investment_id, rationale_id=rationale_id)
    db.delete(r)
    db.commit()


def build_rationale_prompt(investment: InvestmentRequest, template: Template) -> list[dict[str, str]]:
    sections = (template.template_data or {}).get("sections") or []
    outline = []
    for s in sections:
        line = f"- {s.get('name')}"
        if s.get("word_limit"):
            line += f" (max {s['word_limit']} words)"
        if s.get("description"):
            line += f": {s['description']}"
        outline.append(line)

    facts = [
        f"Target company: {investment.target_company}",
        f"Investment type: {investment.investment_type}",
        f"Amount: {investment.amount}",
        f"Risk level: {investment.risk_level}",
    ]
    if investment.expected_return is not None:
        facts.append(f"Expected return: {investment.expected_return}%")
    elif investment.expected_return_min is not None and investment.expected_return_max is not None:
        facts.append(f"Expected return: {investment.expected_return_min}% to {investment.expected_return_max}%")
    if investment.description:
        facts.append(f"Description: {investment.description}")

    return [
        {
            "role": "system",
            "content": (
                "You write investment rationales for an investment committee. "
                "Follow the section outline exactly and respect the word limits."
            ),
        },
        {
            "role": "user",
            "content": "Investment:\n" + "\n".join(facts) + "\n\nSections:\n" + "\n".join(outline),
        },
    ]


def generate_rationale(
    db: Session,
    *,
    ctx: RequestContext,
    llm: LLMServiceClient,
    investment_id: int,
    template_id: int,
) -> InvestmentRationale:
    actor = ctx.require_actor()
    investment = get_investment(db, request_id=investment_id)
    template = get_template(db, template_id=template_id)

    result = llm.chat_completion(
        messages=build_rationale_prompt(investment, template),
        context={"task": "investment_rationale", "investment_id": investment.id, "template_id": template.id},
    )
    content = result.text if result.success else None
    if not content:
        raise ExternalServiceError(result.error or "Failed to generate rationale")

    r = InvestmentRationale(
        investment_id=investment.id,
        content=content.strip(),
        type=RationaleType.ai_generated.value,
        template_id=template.id,
        author_id=actor.user_id,
    )
    db.add(r)
    db.commit()
    db.refresh(r)
    logger.info("templates.rationale_generated", investment_id=investment.id, template_id=template.id)
    return r
