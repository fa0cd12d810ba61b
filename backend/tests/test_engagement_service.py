"""
NoteShare Backend — Engagement Service Tests
==============================================

What:  Likes, comments and the download counter, including concurrent use.
How:   Real SQLite database per test. Concurrency tests run each call in
       its own session (like separate requests) under asyncio.gather.
"""

import asyncio
import uuid

import pytest
import pytest_asyncio

from conftest import note_fields
from noteshare.exceptions import AuthorizationError, NotFoundError
from noteshare.services.engagement_service import EngagementService
from noteshare.services.note_service import NoteService


@pytest.fixture
def service():
    return EngagementService()


@pytest_asyncio.fixture
async def note(db_session, alice, mock_blob_store):
    """A note uploaded by alice, linked to an external file."""
    return await NoteService(blob_store=mock_blob_store).create_note(
        db_session, alice, note_fields(file_url="https://cdn.example.com/a.pdf"),
    )


class TestLikes:

    @pytest.mark.asyncio
    async def test_toggle_adds_then_removes(self, service, db_session, note, bob):
        liked, likes = await service.toggle_like(db_session, bob, note.id)
        assert liked is True
        assert likes == [bob.id]

        liked, likes = await service.toggle_like(db_session, bob, note.id)
        assert liked is False
        assert likes == []

    @pytest.mark.asyncio
    async def test_likes_from_several_users(self, service, db_session, note, alice, bob):
        await service.toggle_like(db_session, alice, note.id)
        liked, likes = await service.toggle_like(db_session, bob, note.id)

        assert liked is True
        assert likes == [alice.id, bob.id]

    @pytest.mark.asyncio
    async def test_like_missing_note(self, service, db_session, bob):
        with pytest.raises(NotFoundError):
            await service.toggle_like(db_session, bob, uuid.uuid4())


class TestComments:

    @pytest.mark.asyncio
    async def test_add_comment_snapshots_username(self, service, db_session, note, bob):
        comments = await service.add_comment(db_session, bob, note.id, "  Very helpful!  ")

        assert len(comments) == 1
        assert comments[0].user_id == bob.id
        assert comments[0].username == "bob"
        assert comments[0].text == "  Very helpful!  "

    @pytest.mark.asyncio
    async def test_comments_keep_append_order(self, service, db_session, note, alice, bob):
        await service.add_comment(db_session, bob, note.id, "first")
        await service.add_comment(db_session, alice, note.id, "second")
        comments = await service.add_comment(db_session, bob, note.id, "third")

        assert [c.text for c in comments] == ["first", "second", "third"]
        assert len({c.id for c in comments}) == 3

    @pytest.mark.asyncio
    async def test_comment_on_missing_note(self, service, db_session, bob):
        with pytest.raises(NotFoundError):
            await service.add_comment(db_session, bob, uuid.uuid4(), "hello")

    @pytest.mark.asyncio
    async def test_author_edits_only_their_comment(self, service, db_session, note, alice, bob):
        await service.add_comment(db_session, bob, note.id, "bob was here")
        comments = await service.add_comment(db_session, alice, note.id, "alice too")
        bob_comment, alice_comment = comments

        edited = await service.edit_comment(db_session, bob, note.id, bob_comment.id, "bob edited")

        assert [c.text for c in edited] == ["bob edited", "alice too"]
        assert edited[0].commented_at >= bob_comment.commented_at
        assert edited[1] == alice_comment

    @pytest.mark.asyncio
    async def test_edit_by_non_author_rejected(self, service, db_session, note, alice, bob):
        """Even the note's uploader cannot rewrite someone else's comment."""
        comments = await service.add_comment(db_session, bob, note.id, "original")

        with pytest.raises(AuthorizationError):
            await service.edit_comment(db_session, alice, note.id, comments[0].id, "rewritten")

    @pytest.mark.asyncio
    async def test_edit_missing_comment(self, service, db_session, note, bob):
        with pytest.raises(NotFoundError):
            await service.edit_comment(db_session, bob, note.id, uuid.uuid4(), "text")

    @pytest.mark.asyncio
    async def test_author_deletes_comment(self, service, db_session, note, bob):
        comments = await service.add_comment(db_session, bob, note.id, "oops")

        remaining = await service.delete_comment(db_session, bob, note.id, comments[0].id)

        assert remaining == []

    @pytest.mark.asyncio
    async def test_note_owner_deletes_any_comment(self, service, db_session, note, alice, bob):
        comments = await service.add_comment(db_session, bob, note.id, "spam")

        remaining = await service.delete_comment(db_session, alice, note.id, comments[0].id)

        assert remaining == []

    @pytest.mark.asyncio
    async def test_stranger_cannot_delete(self, service, db_session, note, bob, make_user):
        carol = await make_user("carol")
        comments = await service.add_comment(db_session, bob, note.id, "mine")

        with pytest.raises(AuthorizationError):
            await service.delete_comment(db_session, carol, note.id, comments[0].id)

    @pytest.mark.asyncio
    async def test_deleting_absent_comment_is_a_no_op(self, service, db_session, note, bob):
        comments = await service.add_comment(db_session, bob, note.id, "stays")

        remaining = await service.delete_comment(db_session, bob, note.id, uuid.uuid4())

        assert remaining == comments

    @pytest.mark.asyncio
    async def test_delete_comment_on_missing_note(self, service, db_session, bob):
        with pytest.raises(NotFoundError):
            await service.delete_comment(db_session, bob, uuid.uuid4(), uuid.uuid4())

    @pytest.mark.asyncio
    async def test_concurrent_comments_are_all_kept(self, service, session_factory, note, bob):
        async def comment(i):
            async with session_factory() as session:
                await service.add_comment(session, bob, note.id, f"comment {i}")

        await asyncio.gather(*(comment(i) for i in range(10)))

        async with session_factory() as session:
            comments = await service._comments(session, note.id)
        assert sorted(c.text for c in comments) == sorted(f"comment {i}" for i in range(10))


class TestDownloadCount:

    @pytest.mark.asyncio
    async def test_increment(self, service, db_session, note):
        assert await service.increment_download(db_session, note.id) == 1
        assert await service.increment_download(db_session, note.id) == 2

    @pytest.mark.asyncio
    async def test_increment_missing_note(self, service, db_session):
        with pytest.raises(NotFoundError):
            await service.increment_download(db_session, uuid.uuid4())

    @pytest.mark.asyncio
    async def test_concurrent_increments_are_not_lost(self, service, session_factory, note):
        async def increment():
            async with session_factory() as session:
                return await service.increment_download(session, note.id)

        results = await asyncio.gather(*(increment() for _ in range(10)))

        assert sorted(results) == list(range(1, 11))
        async with session_factory() as session:
            assert await service.increment_download(session, note.id) == 11
