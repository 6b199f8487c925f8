import asyncio
from tms.application.loaders import create_user_loader
from tms.application.service import UserService
from tms.domain.models import UserRole

def _spy_on_get_many(monkeypatch):
    calls = []
    original = UserService.get_many

    def spy(self, user_ids):
        calls.append(list(user_ids))
        return original(self, user_ids)

    monkeypatch.setattr(UserService, "get_many", spy)
    return calls

def test_batch_window_issues_one_query_and_keeps_order(db, settings, make_user, monkeypatch):
    a = make_user()[1]
    b = make_user()[1]
    c = make_user(role=UserRole.admin)[1]
    calls = _spy_on_get_many(monkeypatch)

    async def run():
        loader = create_user_loader(db, settings)
        return await loader.load_many([a.id, b.id, a.id, c.id])

    results = asyncio.run(run())

    assert calls == [[a.id, b.id, c.id]]
    assert [u.id for u in results] == [a.id, b.id, a.id, c.id]
    assert results[0] is results[2]

def test_missing_user_resolves_to_none(db, settings, make_user, monkeypatch):
    known = make_user()[1]
    calls = _spy_on_get_many(monkeypatch)

    async def run():
        loader = create_user_loader(db, settings)
        return await asyncio.gather(loader.load("missing"), loader.load(known.id))

    missing, found = asyncio.run(run())

    assert missing is None
    assert found.id == known.id
    assert len(calls) == 1

def test_loaders_are_not_shared(db, settings, make_user, monkeypatch):
    user = make_user()[1]
    calls = _spy_on_get_many(monkeypatch)

    async def run():
        await create_user_loader(db, settings).load(user.id)
        await create_user_loader(db, settings).load(user.id)

    asyncio.run(run())
    assert calls == [[user.id], [user.id]]

def test_batch_query_runs_in_a_worker_thread(db, settings, make_user, monkeypatch):
    user = make_user()[1]
    on_loop = []
    original = UserService.get_many

    def spy(self, user_ids):
        try:
            asyncio.get_running_loop()
            on_loop.append(True)
        except RuntimeError:
            on_loop.append(False)
        return original(self, user_ids)

    monkeypatch.setattr(UserService, "get_many", spy)

    async def run():
        return await create_user_loader(db, settings).load(user.id)

    assert asyncio.run(run()).id == user.id
    assert on_loop == [False]
