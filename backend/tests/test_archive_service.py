"""
NoteShare Backend — Archive Service Tests
===========================================

What:  Per-user archive membership and the note's archived flag.
How:   Real SQLite database per test, notes created through NoteService.
"""

import asyncio
import uuid

import pytest
import pytest_asyncio

from conftest import note_fields
from noteshare.exceptions import NotFoundError
from noteshare.services.archive_service import ArchiveService
from noteshare.services.note_service import NoteService


@pytest.fixture
def service():
    return ArchiveService()


@pytest.fixture
def notes(mock_blob_store):
    return NoteService(blob_store=mock_blob_store)


@pytest_asyncio.fixture
async def note(db_session, alice, notes):
    return await notes.create_note(
        db_session, alice, note_fields(file_url="https://cdn.example.com/a.pdf"),
    )


async def _archived_flag(notes, db_session, note_id) -> bool:
    return (await notes.get_note(db_session, note_id)).archived


class TestArchive:

    @pytest.mark.asyncio
    async def test_archive_sets_flag(self, service, notes, db_session, note, bob):
        already = await service.archive(db_session, bob, note.id)

        assert already is False
        assert await _archived_flag(notes, db_session, note.id) is True

    @pytest.mark.asyncio
    async def test_archive_twice_is_reported_not_duplicated(self, service, db_session, note, bob):
        await service.archive(db_session, bob, note.id)
        already = await service.archive(db_session, bob, note.id)

        assert already is True
        assert [n.id for n in await service.list_archives(db_session, bob)] == [note.id]

    @pytest.mark.asyncio
    async def test_archive_missing_note(self, service, db_session, bob):
        with pytest.raises(NotFoundError):
            await service.archive(db_session, bob, uuid.uuid4())

    @pytest.mark.asyncio
    async def test_concurrent_archive_by_same_user(self, service, session_factory, note, bob):
        async def archive():
            async with session_factory() as session:
                return await service.archive(session, bob, note.id)

        results = await asyncio.gather(*(archive() for _ in range(5)))

        assert results.count(False) == 1
        async with session_factory() as session:
            assert len(await service.list_archives(session, bob)) == 1


class TestUnarchive:

    @pytest.mark.asyncio
    async def test_flag_stays_while_another_user_keeps_it(
        self, service, notes, db_session, note, alice, bob
    ):
        await service.archive(db_session, alice, note.id)
        await service.archive(db_session, bob, note.id)

        assert await service.unarchive(db_session, bob, note.id) is True
        assert await _archived_flag(notes, db_session, note.id) is True

        assert await service.unarchive(db_session, alice, note.id) is True
        assert await _archived_flag(notes, db_session, note.id) is False

    @pytest.mark.asyncio
    async def test_unarchive_never_archived_note(self, service, notes, db_session, note, bob):
        assert await service.unarchive(db_session, bob, note.id) is False
        assert await _archived_flag(notes, db_session, note.id) is False

    @pytest.mark.asyncio
    async def test_unarchive_missing_note(self, service, db_session, bob):
        with pytest.raises(NotFoundError):
            await service.unarchive(db_session, bob, uuid.uuid4())


class TestListArchives:

    @pytest.mark.asyncio
    async def test_most_recently_archived_first(self, service, notes, db_session, alice, bob):
        first = await notes.create_note(
            db_session, alice, note_fields(title="First", file_url="https://cdn.example.com/1.pdf"),
        )
        second = await notes.create_note(
            db_session, alice, note_fields(title="Second", file_url="https://cdn.example.com/2.pdf"),
        )

        await service.archive(db_session, bob, second.id)
        await service.archive(db_session, bob, first.id)

        archived = await service.list_archives(db_session, bob)
        assert [n.title for n in archived] == ["First", "Second"]
        assert all(n.archived for n in archived)

    @pytest.mark.asyncio
    async def test_archives_are_per_user(self, service, db_session, note, alice, bob):
        await service.archive(db_session, bob, note.id)

        assert await service.list_archives(db_session, alice) == []

    @pytest.mark.asyncio
    async def test_deleted_note_leaves_archives(self, service, notes, db_session, note, alice, bob):
        await service.archive(db_session, bob, note.id)

        await notes.delete_note(db_session, alice, note.id)

        assert await service.list_archives(db_session, bob) == []
