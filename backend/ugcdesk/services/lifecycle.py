"""
Content lifecycle engine.

Owns every status change of an InboxItem and the rights sub-state of a
ContentItem, and keeps the latter consistent with RightsRequest rows.

Inbox graph:
    new      -> reviewed | approved | rejected
    reviewed -> approved | rejected
    approved -> published
    rejected, published: terminal

Rights graph (ContentItem.rights_status):
    unknown | pending | declined -> requested      (request_rights)
    requested -> requested                         (another brand asks)
    requested -> approved | declined               (resolve_rights)
    requested -> requested                         (decline while another brand waits)
    approved: terminal; later answers only close their request

Every operation commits once. A rights request and the content's
rights_status therefore land in the same transaction or not at all.
"""
from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload
from sqlalchemy.orm.exc import StaleDataError

from ugcdesk.errors import ConflictError, InvalidState, NotFound
from ugcdesk.models import (
    ContentItem,
    InboxItem,
    InboxStatus,
    RightsRequest,
    RightsRequestStatus,
    RightsStatus,
)
from ugcdesk.services.notify import notify_info

logger = logging.getLogger(__name__)

INBOX_TRANSITIONS: dict[InboxStatus, frozenset[InboxStatus]] = {
    InboxStatus.new: frozenset({InboxStatus.reviewed, InboxStatus.approved, InboxStatus.rejected}),
    InboxStatus.reviewed: frozenset({InboxStatus.approved, InboxStatus.rejected}),
    InboxStatus.approved: frozenset({InboxStatus.published}),
    InboxStatus.rejected: frozenset(),
    InboxStatus.published: frozenset(),
}

RIGHTS_TRANSITIONS: dict[RightsStatus, frozenset[RightsStatus]] = {
    RightsStatus.unknown: frozenset({RightsStatus.requested}),
    RightsStatus.pending: frozenset({RightsStatus.requested}),
    RightsStatus.declined: frozenset({RightsStatus.requested}),
    RightsStatus.requested: frozenset({RightsStatus.requested, RightsStatus.approved, RightsStatus.declined}),
    RightsStatus.approved: frozenset(),
}

RIGHTS_DECISIONS = frozenset({RightsStatus.approved, RightsStatus.declined})


def can_transition_inbox(current: InboxStatus, target: InboxStatus) -> bool:
    # Same-status updates only touch notes/updated_at.
    return target == current or target in INBOX_TRANSITIONS[current]


def can_transition_rights(current: RightsStatus, target: RightsStatus) -> bool:
    return target in RIGHTS_TRANSITIONS[current]


def rights_after_decision(current: RightsStatus, decision: RightsStatus, *, others_pending: bool) -> RightsStatus:
    """Content rights status once one pending request is answered.

    Approval is terminal. A decline only shows on the content when no other
    brand is still waiting for an answer.
    """
    if current == RightsStatus.approved or decision == RightsStatus.approved:
        return RightsStatus.approved
    if others_pending:
        return RightsStatus.requested
    return RightsStatus.declined


def _next_timestamp(previous: datetime | None) -> datetime:
    """Current UTC time, nudged forward so it is strictly after `previous`."""
    now = datetime.now(timezone.utc)
    if previous is None:
        return now
    if previous.tzinfo is None:
        previous = previous.replace(tzinfo=timezone.utc)
    if now <= previous:
        now = previous + timedelta(microseconds=1)
    return now


def _parse_enum(enum_cls, value: Any, field: str):
    try:
        return enum_cls(value)
    except ValueError as exc:
        allowed = [m.value for m in enum_cls]
        raise InvalidState(f"Invalid {field}: {value!r}", allowed=allowed) from exc


async def _commit(session: AsyncSession, action: str) -> None:
    try:
        await session.commit()
    except StaleDataError as exc:
        await session.rollback()
        logger.warning(f"[lifecycle] {action}: stale write, rolled back")
        raise ConflictError(f"Concurrent modification during {action}, retry") from exc
    except IntegrityError as exc:
        await session.rollback()
        logger.warning(f"[lifecycle] {action}: constraint violated, rolled back")
        raise ConflictError(f"Conflicting write during {action}, retry") from exc
    except SQLAlchemyError:
        await session.rollback()
        logger.exception(f"[lifecycle] {action}: store error, rolled back")
        raise


async def _get_content(session: AsyncSession, content_id: int) -> ContentItem:
    content = await session.get(ContentItem, content_id)
    if not content:
        raise NotFound("Content not found", content_id=content_id)
    return content


# ============ Inbox ============

async def promote_to_inbox(session: AsyncSession, content_id: int) -> tuple[InboxItem, bool]:
    """Queue a content item for review.

    Returns (inbox_item, created). Promoting the same content twice returns
    the existing item with created=False.
    """
    await _get_content(session, content_id)

    existing = await session.scalar(select(InboxItem).where(InboxItem.content_id == content_id))
    if existing:
        return existing, False

    now = datetime.now(timezone.utc)
    item = InboxItem(
        content_id=content_id,
        status=InboxStatus.new.value,
        notes=None,
        created_at=now,
        updated_at=now,
    )
    session.add(item)
    try:
        await session.commit()
    except IntegrityError:
        # Lost a race against a concurrent promote of the same content.
        await session.rollback()
        existing = await session.scalar(select(InboxItem).where(InboxItem.content_id == content_id))
        if existing:
            return existing, False
        raise

    logger.info(f"[lifecycle] Content {content_id} promoted to inbox as item {item.id}")
    return item, True


async def get_inbox_item(session: AsyncSession, inbox_id: int) -> InboxItem:
    item = await session.get(InboxItem, inbox_id)
    if not item:
        raise NotFound("Inbox item not found", inbox_id=inbox_id)
    return item


async def list_inbox(
    session: AsyncSession,
    status: str | None = None,
    *,
    limit: int = 50,
    offset: int = 0,
    with_content: bool = False,
) -> list[InboxItem]:
    q = select(InboxItem)
    if status and status != "all":
        q = q.where(InboxItem.status == _parse_enum(InboxStatus, status, "inbox status").value)
    if with_content:
        q = q.options(selectinload(InboxItem.content))
    q = q.order_by(InboxItem.created_at.desc(), InboxItem.id.desc()).limit(limit).offset(offset)
    res = await session.execute(q)
    return list(res.scalars().all())


async def update_inbox_status(
    session: AsyncSession,
    inbox_id: int,
    new_status: str | InboxStatus,
    notes: str | None = None,
) -> InboxItem:
    target = _parse_enum(InboxStatus, new_status, "inbox status")
    item = await get_inbox_item(session, inbox_id)
    current = InboxStatus(item.status)

    if not can_transition_inbox(current, target):
        raise InvalidState(
            f"Inbox item cannot move from '{current.value}' to '{target.value}'",
            inbox_id=inbox_id,
            current=current.value,
            allowed=sorted(s.value for s in INBOX_TRANSITIONS[current]),
        )

    item.status = target.value
    if notes is not None:
        item.notes = notes
    item.updated_at = _next_timestamp(item.updated_at)
    session.add(item)
    await _commit(session, f"inbox {inbox_id} -> {target.value}")

    logger.info(f"[lifecycle] Inbox item {inbox_id}: {current.value} -> {target.value}")
    return item


# ============ Rights ============

async def request_rights(
    session: AsyncSession,
    content_id: int,
    brand_id: str,
    terms: dict | None = None,
    *,
    contact_email: str | None = None,
    message: str | None = None,
) -> RightsRequest:
    content = await _get_content(session, content_id)
    current = RightsStatus(content.rights_status)

    if not can_transition_rights(current, RightsStatus.requested):
        raise InvalidState(
            f"Rights for content {content_id} are already '{current.value}'",
            content_id=content_id,
            rights_status=current.value,
        )

    open_request = await session.scalar(
        select(RightsRequest.id).where(
            RightsRequest.content_id == content_id,
            RightsRequest.brand_id == brand_id,
            RightsRequest.status == RightsRequestStatus.pending.value,
        )
    )
    if open_request is not None:
        raise InvalidState(
            "A pending rights request already exists for this brand",
            content_id=content_id,
            brand_id=brand_id,
            rights_request_id=open_request,
        )

    now = datetime.now(timezone.utc)
    request = RightsRequest(
        content_id=content_id,
        brand_id=brand_id,
        terms=terms or {},
        contact_email=contact_email,
        message=message,
        status=RightsRequestStatus.pending.value,
        created_at=now,
    )
    content.rights_status = RightsStatus.requested.value
    content.updated_at = _next_timestamp(content.updated_at)
    session.add(request)
    session.add(content)
    await _commit(session, f"rights request for content {content_id}")

    logger.info(f"[lifecycle] Rights request {request.id} created for content {content_id} (brand={brand_id})")
    await notify_info(
        "Rights request created",
        {"content_id": content_id, "brand_id": brand_id, "author": content.author_username},
    )
    return request


async def resolve_rights(
    session: AsyncSession,
    content_id: int,
    decision: str | RightsStatus,
) -> RightsRequest:
    """Apply a creator's answer to the most recent pending request."""
    target = _parse_enum(RightsStatus, decision, "rights decision")
    if target not in RIGHTS_DECISIONS:
        raise InvalidState(
            f"Invalid rights decision: {target.value!r}",
            allowed=sorted(s.value for s in RIGHTS_DECISIONS),
        )

    content = await _get_content(session, content_id)
    request = await session.scalar(
        select(RightsRequest)
        .where(
            RightsRequest.content_id == content_id,
            RightsRequest.status == RightsRequestStatus.pending.value,
        )
        .order_by(RightsRequest.created_at.desc(), RightsRequest.id.desc())
        .limit(1)
    )
    if not request:
        raise NotFound("No pending rights request for content", content_id=content_id)

    others_pending = await session.scalar(
        select(func.count(RightsRequest.id)).where(
            RightsRequest.content_id == content_id,
            RightsRequest.status == RightsRequestStatus.pending.value,
            RightsRequest.id != request.id,
        )
    )
    current = RightsStatus(content.rights_status)
    mirrored = rights_after_decision(current, target, others_pending=bool(others_pending))

    now = datetime.now(timezone.utc)
    request.status = target.value
    request.resolved_at = now
    content.rights_status = mirrored.value
    content.updated_at = _next_timestamp(content.updated_at)
    session.add(request)
    session.add(content)
    await _commit(session, f"resolve rights for content {content_id}")

    logger.info(f"[lifecycle] Rights request {request.id} for content {content_id} resolved: {target.value}")
    return request


async def list_rights_requests(session: AsyncSession, content_id: int) -> list[RightsRequest]:
    await _get_content(session, content_id)
    res = await session.execute(
        select(RightsRequest)
        .where(RightsRequest.content_id == content_id)
        .order_by(RightsRequest.created_at.desc(), RightsRequest.id.desc())
    )
    return list(res.scalars().all())


async def get_rights_status(session: AsyncSession, content_id: int) -> dict:
    content = await _get_content(session, content_id)
    latest = await session.scalar(
        select(RightsRequest)
        .where(RightsRequest.content_id == content_id)
        .order_by(RightsRequest.created_at.desc(), RightsRequest.id.desc())
        .limit(1)
    )
    return {
        "content_id": content.id,
        "rights_status": content.rights_status,
        "latest_request_id": latest.id if latest else None,
        "latest_request_status": latest.status if latest else None,
    }
