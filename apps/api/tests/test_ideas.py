from datetime import datetime, timezone

import pytest

from exceptions import NotFoundError, ValidationError
from models.idea import Idea
from services.ideas import create_idea, delete_idea, get_idea, list_ideas, update_idea


@pytest.mark.asyncio
async def test_long_content_becomes_truncated_title_and_description(db, account):
    content = "x" * 150

    idea = await create_idea(account.id, db, content=content)

    assert idea.title == "x" * 100 + "..."
    assert idea.description == content
    assert idea.status == "pending"
    assert idea.created_at is not None


@pytest.mark.asyncio
async def test_ideas_are_listed_newest_first(db, make_account, account):
    account_id = account.id
    other = await make_account("other@example.com")
    db.add_all(
        [
            Idea(account_id=account_id, title="Older", bullets=[], status="pending",
                 created_at=datetime(2025, 1, 1, tzinfo=timezone.utc)),
            Idea(account_id=account_id, title="Newer", bullets=[], status="pending",
                 created_at=datetime(2025, 6, 1, tzinfo=timezone.utc)),
            Idea(account_id=other.id, title="Someone else", bullets=[], status="pending",
                 created_at=datetime(2025, 9, 1, tzinfo=timezone.utc)),
        ]
    )
    await db.commit()

    ideas = await list_ideas(account_id, db)

    assert [idea.title for idea in ideas] == ["Newer", "Older"]


@pytest.mark.asyncio
async def test_update_only_touches_passed_fields(db, account):
    idea = await create_idea(
        account.id, db, content="Offline sync", description="CRDT notes", bullets=["merge"]
    )

    updated = await update_idea(account.id, idea.id, db, status="archived", description="")

    assert updated.status == "archived"
    assert updated.description is None
    assert updated.title == "Offline sync"
    assert updated.bullets == ["merge"]


@pytest.mark.asyncio
async def test_update_rejects_blank_title_and_unknown_status(db, account):
    idea = await create_idea(account.id, db, content="Offline sync")

    with pytest.raises(ValidationError):
        await update_idea(account.id, idea.id, db, title="   ")
    with pytest.raises(ValidationError):
        await update_idea(account.id, idea.id, db, status="published")


@pytest.mark.asyncio
async def test_foreign_ideas_cannot_be_changed(db, make_account, account):
    idea = await create_idea(account.id, db, content="Offline sync")
    other = await make_account("other@example.com")

    with pytest.raises(NotFoundError):
        await update_idea(other.id, idea.id, db, title="Stolen")
    with pytest.raises(NotFoundError):
        await delete_idea(other.id, idea.id, db)

    assert (await get_idea(account.id, idea.id, db)).title == "Offline sync"


@pytest.mark.asyncio
async def test_delete_removes_the_idea(db, account):
    account_id = account.id
    idea = await create_idea(account_id, db, content="Offline sync")
    idea_id = idea.id

    await delete_idea(account_id, idea_id, db)

    with pytest.raises(NotFoundError):
        await get_idea(account_id, idea_id, db)
    with pytest.raises(NotFoundError):
        await delete_idea(account_id, idea_id, db)
