"""Reviews after completion and the rating aggregate."""
import pytest

from conftest import task_fields
from hustlrs.domain.common.errors import DuplicateEntry, Forbidden, InvalidState, NotFoundError, ValidationError
from hustlrs.infra.db.repositories.user_repo import UserRepository
from hustlrs.services.review_service import ReviewService
from hustlrs.services.task_lifecycle import TaskLifecycleService


async def _task_in(session_factory, poster, hustler, status="COMPLETED"):
    async with session_factory() as s:
        task = await TaskLifecycleService(s).create(poster, task_fields())
    async with session_factory() as s:
        await TaskLifecycleService(s).assign(task.id, hustler.id, hustler.id)
    if status != "ASSIGNED":
        async with session_factory() as s:
            await TaskLifecycleService(s).update_status(task.id, status, poster.id)
    return task


async def _review(session_factory, task_id, author, rating, comment=None):
    async with session_factory() as s:
        return await ReviewService(s).create(task_id, author, rating, comment)


async def test_both_parties_review_each_other(session_factory, poster, hustler):
    task = await _task_in(session_factory, poster, hustler)

    to_hustler = await _review(session_factory, task.id, poster, 5, "  Fast and friendly ")
    to_poster = await _review(session_factory, task.id, hustler, 4)

    assert to_hustler.target_id == hustler.id
    assert to_hustler.comment == "Fast and friendly"
    assert to_poster.target_id == poster.id
    async with session_factory() as s:
        repo = UserRepository(s)
        rated_hustler = await repo.get_by_id(hustler.id)
        rated_poster = await repo.get_by_id(poster.id)
    assert (rated_hustler.rating, rated_hustler.total_rating) == (5, 1)
    assert rated_poster.average_rating == 4.0


async def test_average_over_several_tasks(session_factory, poster, hustler):
    for stars in (5, 4, 4):
        task = await _task_in(session_factory, poster, hustler)
        await _review(session_factory, task.id, poster, stars)
    async with session_factory() as s:
        rated = await UserRepository(s).get_by_id(hustler.id)
    assert rated.total_rating == 3
    assert rated.average_rating == 4.33


async def test_second_review_is_duplicate(session_factory, poster, hustler):
    task = await _task_in(session_factory, poster, hustler)
    await _review(session_factory, task.id, poster, 5)
    with pytest.raises(DuplicateEntry):
        await _review(session_factory, task.id, poster, 1)


@pytest.mark.parametrize("rating", [0, 6, 3.5, True])
async def test_rating_range(session_factory, poster, hustler, rating):
    task = await _task_in(session_factory, poster, hustler)
    with pytest.raises(ValidationError):
        await _review(session_factory, task.id, poster, rating)


async def test_only_completed_tasks(session_factory, poster, hustler):
    task = await _task_in(session_factory, poster, hustler, status="ASSIGNED")
    with pytest.raises(InvalidState):
        await _review(session_factory, task.id, poster, 5)


async def test_outsider_cannot_review(session_factory, poster, hustler, make_user):
    outsider = await make_user("BOTH")
    task = await _task_in(session_factory, poster, hustler)
    with pytest.raises(Forbidden):
        await _review(session_factory, task.id, outsider, 5)


async def test_unknown_task(session_factory, poster):
    with pytest.raises(NotFoundError):
        await _review(session_factory, "missing", poster, 5)


async def test_list_for_user_includes_author(session_factory, poster, hustler):
    task = await _task_in(session_factory, poster, hustler)
    await _review(session_factory, task.id, poster, 5, "Great")
    async with session_factory() as s:
        rows = await ReviewService(s).list_for_user(hustler.id)
        with pytest.raises(NotFoundError):
            await ReviewService(s).list_for_user("nobody")
    assert len(rows) == 1
    review, author = rows[0]
    assert review.comment == "Great"
    assert author.id == poster.id
