"""
Tests for the content lifecycle engine.

Covers:
- promote_to_inbox: existence check, idempotency
- update_inbox_status: transition table, notes, updated_at ordering, NotFound
- request_rights / resolve_rights: atomic dual write, duplicate guards,
  decision mirroring
- optimistic concurrency on stale writes
- end-to-end review and rights flows
"""
import pytest
from sqlalchemy import func, select, update
from sqlalchemy.exc import SQLAlchemyError

from ugcdesk.errors import ConflictError, InvalidState, NotFound
from ugcdesk.models import ContentItem, InboxItem, RightsRequest, RightsStatus
from ugcdesk.services import lifecycle


async def _count(session, model) -> int:
    return await session.scalar(select(func.count(model.id)))


# =============================================================================
# Promote to inbox
# =============================================================================

class TestPromoteToInbox:
    """Tests for promote_to_inbox."""

    async def test_promote_existing_content_creates_new_item(self, session, make_content):
        """Promoting stored content creates an inbox item in 'new'."""
        content = await make_content()

        item, created = await lifecycle.promote_to_inbox(session, content.id)

        assert created is True
        assert item.content_id == content.id
        assert item.status == "new"
        assert item.notes is None

    async def test_promote_missing_content_raises_not_found(self, session):
        """Promoting an unknown content id fails and creates nothing."""
        with pytest.raises(NotFound):
            await lifecycle.promote_to_inbox(session, 9999)

        assert await _count(session, InboxItem) == 0

    async def test_promote_twice_returns_existing_item(self, session, make_content):
        """A second promote is a no-op returning the original item."""
        content = await make_content()

        first, created_first = await lifecycle.promote_to_inbox(session, content.id)
        second, created_second = await lifecycle.promote_to_inbox(session, content.id)

        assert created_first is True
        assert created_second is False
        assert second.id == first.id
        assert await _count(session, InboxItem) == 1


# =============================================================================
# Inbox status updates
# =============================================================================

class TestUpdateInboxStatus:
    """Tests for update_inbox_status and the inbox transition table."""

    async def test_update_sets_status_and_advances_updated_at(self, session, make_content):
        """Status is applied and updated_at strictly increases on every update."""
        content = await make_content()
        item, _ = await lifecycle.promote_to_inbox(session, content.id)
        before = item.updated_at

        updated = await lifecycle.update_inbox_status(session, item.id, "reviewed")
        after_first = updated.updated_at
        updated = await lifecycle.update_inbox_status(session, item.id, "approved")

        assert updated.status == "approved"
        assert after_first.replace(tzinfo=None) > before.replace(tzinfo=None)
        assert updated.updated_at.replace(tzinfo=None) > after_first.replace(tzinfo=None)

    async def test_notes_overwritten_only_when_provided(self, session, make_content):
        """Omitting notes keeps the previous value."""
        content = await make_content()
        item, _ = await lifecycle.promote_to_inbox(session, content.id)

        await lifecycle.update_inbox_status(session, item.id, "reviewed", notes="looks good")
        updated = await lifecycle.update_inbox_status(session, item.id, "approved")

        assert updated.notes == "looks good"

    @pytest.mark.parametrize(
        "path, illegal",
        [
            ([], "published"),
            (["rejected"], "approved"),
            (["approved", "published"], "new"),
            (["reviewed"], "new"),
        ],
    )
    async def test_illegal_transition_raises_invalid_state(self, session, make_content, path, illegal):
        """Moves outside the transition table are rejected and leave the status alone."""
        content = await make_content()
        item, _ = await lifecycle.promote_to_inbox(session, content.id)
        for step in path:
            await lifecycle.update_inbox_status(session, item.id, step)
        expected = path[-1] if path else "new"

        with pytest.raises(InvalidState):
            await lifecycle.update_inbox_status(session, item.id, illegal)

        refreshed = await lifecycle.get_inbox_item(session, item.id)
        assert refreshed.status == expected

    async def test_unknown_status_value_raises_invalid_state(self, session, make_content):
        content = await make_content()
        item, _ = await lifecycle.promote_to_inbox(session, content.id)

        with pytest.raises(InvalidState):
            await lifecycle.update_inbox_status(session, item.id, "archived")

    async def test_same_status_update_only_touches_notes(self, session, make_content):
        content = await make_content()
        item, _ = await lifecycle.promote_to_inbox(session, content.id)

        updated = await lifecycle.update_inbox_status(session, item.id, "new", notes="triage later")

        assert updated.status == "new"
        assert updated.notes == "triage later"

    async def test_missing_inbox_item_raises_not_found_and_store_unchanged(self, session, make_content):
        """Updating a nonexistent inbox id fails without touching other items."""
        content = await make_content()
        await lifecycle.promote_to_inbox(session, content.id)
        before = await lifecycle.list_inbox(session)

        with pytest.raises(NotFound):
            await lifecycle.update_inbox_status(session, 424242, "approved")

        after = await lifecycle.list_inbox(session)
        assert len(after) == len(before) == 1
        assert after[0].status == "new"

    async def test_stale_version_raises_conflict(self, session, make_content):
        """A write based on an outdated version is rejected."""
        content = await make_content()
        item, _ = await lifecycle.promote_to_inbox(session, content.id)

        # Another writer bumps the row behind this session's back.
        await session.execute(
            update(InboxItem)
            .where(InboxItem.id == item.id)
            .values(version=InboxItem.version + 1)
            .execution_options(synchronize_session=False)
        )
        await session.commit()

        with pytest.raises(ConflictError):
            await lifecycle.update_inbox_status(session, item.id, "reviewed")

    async def test_list_inbox_filters_by_status(self, session, make_content):
        a = await make_content()
        b = await make_content()
        item_a, _ = await lifecycle.promote_to_inbox(session, a.id)
        await lifecycle.promote_to_inbox(session, b.id)
        await lifecycle.update_inbox_status(session, item_a.id, "approved")

        approved = await lifecycle.list_inbox(session, "approved")
        everything = await lifecycle.list_inbox(session, "all")

        assert [i.id for i in approved] == [item_a.id]
        assert len(everything) == 2


# =============================================================================
# Rights
# =============================================================================

class TestRequestRights:
    """Tests for request_rights."""

    async def test_request_sets_requested_and_creates_one_pending_request(self, session, make_content):
        content = await make_content()

        request = await lifecycle.request_rights(session, content.id, "brand_9", {"usage": "ad"})

        await session.refresh(content)
        assert content.rights_status == "requested"
        assert request.status == "pending"
        assert request.terms == {"usage": "ad"}
        requests = await lifecycle.list_rights_requests(session, content.id)
        assert [r.id for r in requests] == [request.id]

    async def test_missing_content_raises_not_found(self, session):
        with pytest.raises(NotFound):
            await lifecycle.request_rights(session, 777, "brand_1")
        assert await _count(session, RightsRequest) == 0

    async def test_duplicate_pending_request_for_same_brand_rejected(self, session, make_content):
        content = await make_content()
        await lifecycle.request_rights(session, content.id, "brand_1")

        with pytest.raises(InvalidState):
            await lifecycle.request_rights(session, content.id, "brand_1")

        assert await _count(session, RightsRequest) == 1

    async def test_second_brand_may_request_while_pending(self, session, make_content):
        content = await make_content()
        await lifecycle.request_rights(session, content.id, "brand_1")

        await lifecycle.request_rights(session, content.id, "brand_2")

        assert await _count(session, RightsRequest) == 2

    async def test_approved_rights_cannot_be_requested_again(self, session, make_content):
        content = await make_content()
        await lifecycle.request_rights(session, content.id, "brand_1")
        await lifecycle.resolve_rights(session, content.id, "approved")

        with pytest.raises(InvalidState):
            await lifecycle.request_rights(session, content.id, "brand_2")

    async def test_declined_content_can_be_requested_again(self, session, make_content):
        content = await make_content()
        await lifecycle.request_rights(session, content.id, "brand_1")
        await lifecycle.resolve_rights(session, content.id, "declined")

        await lifecycle.request_rights(session, content.id, "brand_1")

        status = await lifecycle.get_rights_status(session, content.id)
        assert status["rights_status"] == "requested"
        assert status["latest_request_status"] == "pending"

    async def test_failed_commit_leaves_neither_row(self, session, session_factory, make_content, monkeypatch):
        """The request row and the content's rights_status land together or not at all."""
        content = await make_content()
        content_id = content.id

        async def _flush_then_fail():
            # Both writes reach the database before the commit blows up.
            await session.flush()
            raise SQLAlchemyError("disk full")

        monkeypatch.setattr(session, "commit", _flush_then_fail)
        with pytest.raises(SQLAlchemyError):
            await lifecycle.request_rights(session, content_id, "brand_1")

        async with session_factory() as fresh:
            stored = await fresh.get(ContentItem, content_id)
            assert stored.rights_status == "unknown"
            assert await _count(fresh, RightsRequest) == 0


class TestResolveRights:
    """Tests for resolve_rights."""

    async def test_resolve_mirrors_decision_into_content(self, session, make_content):
        content = await make_content()
        request = await lifecycle.request_rights(session, content.id, "brand_1")

        resolved = await lifecycle.resolve_rights(session, content.id, "approved")

        await session.refresh(content)
        assert resolved.id == request.id
        assert resolved.status == "approved"
        assert resolved.resolved_at is not None
        assert content.rights_status == "approved"

    async def test_resolve_picks_most_recent_pending_request(self, session, make_content):
        content = await make_content()
        older = await lifecycle.request_rights(session, content.id, "brand_1")
        newer = await lifecycle.request_rights(session, content.id, "brand_2")

        resolved = await lifecycle.resolve_rights(session, content.id, "declined")

        assert resolved.id == newer.id
        await session.refresh(older)
        assert older.status == "pending"

    async def test_decline_keeps_requested_while_another_brand_waits(self, session, make_content):
        content = await make_content()
        await lifecycle.request_rights(session, content.id, "brand_a")
        await lifecycle.request_rights(session, content.id, "brand_b")

        await lifecycle.resolve_rights(session, content.id, "declined")
        await session.refresh(content)
        assert content.rights_status == "requested"

        remaining = await lifecycle.resolve_rights(session, content.id, "approved")

        await session.refresh(content)
        assert remaining.brand_id == "brand_a"
        assert remaining.status == "approved"
        assert content.rights_status == "approved"

    async def test_every_brand_declining_ends_declined(self, session, make_content):
        content = await make_content()
        await lifecycle.request_rights(session, content.id, "brand_a")
        await lifecycle.request_rights(session, content.id, "brand_b")

        await lifecycle.resolve_rights(session, content.id, "declined")
        await lifecycle.resolve_rights(session, content.id, "declined")

        await session.refresh(content)
        assert content.rights_status == "declined"
        requests = await lifecycle.list_rights_requests(session, content.id)
        assert [r.status for r in requests] == ["declined", "declined"]

    async def test_answer_after_approval_closes_request_only(self, session, make_content):
        content = await make_content()
        await lifecycle.request_rights(session, content.id, "brand_a")
        await lifecycle.request_rights(session, content.id, "brand_b")
        await lifecycle.resolve_rights(session, content.id, "approved")

        late = await lifecycle.resolve_rights(session, content.id, "declined")

        await session.refresh(content)
        assert late.brand_id == "brand_a"
        assert late.status == "declined"
        assert content.rights_status == "approved"

    @pytest.mark.parametrize(
        "current, decision, others_pending, expected",
        [
            ("requested", "approved", False, "approved"),
            ("requested", "declined", False, "declined"),
            ("requested", "declined", True, "requested"),
            ("approved", "declined", False, "approved"),
            ("declined", "approved", False, "approved"),
        ],
    )
    def test_rights_after_decision(self, current, decision, others_pending, expected):
        result = lifecycle.rights_after_decision(
            RightsStatus(current), RightsStatus(decision), others_pending=others_pending
        )
        assert result == RightsStatus(expected)

    async def test_resolve_without_pending_request_raises_not_found(self, session, make_content):
        content = await make_content()

        with pytest.raises(NotFound):
            await lifecycle.resolve_rights(session, content.id, "approved")

        await session.refresh(content)
        assert content.rights_status == "unknown"

    @pytest.mark.parametrize("decision", ["requested", "pending", "maybe"])
    async def test_invalid_decision_raises_invalid_state(self, session, make_content, decision):
        content = await make_content()
        await lifecycle.request_rights(session, content.id, "brand_1")

        with pytest.raises(InvalidState):
            await lifecycle.resolve_rights(session, content.id, decision)


# =============================================================================
# End-to-end flows
# =============================================================================

class TestLifecycleFlows:
    """Full review and rights flows over one content item."""

    async def test_review_flow_to_published(self, session, make_content):
        """new -> approved -> published."""
        content = await make_content()

        item, _ = await lifecycle.promote_to_inbox(session, content.id)
        assert item.status == "new"
        item = await lifecycle.update_inbox_status(session, item.id, "approved")
        assert item.status == "approved"
        item = await lifecycle.update_inbox_status(session, item.id, "published")
        assert item.status == "published"

    async def test_rights_flow_declined(self, session, make_content):
        """Request then decline: content and request both end up declined."""
        content = await make_content()

        await lifecycle.request_rights(session, content.id, "brand_9", {"usage": "ad"})
        await session.refresh(content)
        assert content.rights_status == "requested"

        request = await lifecycle.resolve_rights(session, content.id, "declined")
        await session.refresh(content)
        assert content.rights_status == "declined"
        assert request.status == "declined"

    async def test_rights_actions_do_not_touch_inbox_status(self, session, make_content):
        content = await make_content()
        item, _ = await lifecycle.promote_to_inbox(session, content.id)

        await lifecycle.request_rights(session, content.id, "brand_1")
        await lifecycle.resolve_rights(session, content.id, "approved")

        refreshed = await lifecycle.get_inbox_item(session, item.id)
        assert refreshed.status == "new"
