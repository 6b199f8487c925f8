import asyncio
from typing import Any, Callable, Iterator, TypeVar
from fastapi import Request
from sqlalchemy import create_engine, Engine
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool
from starlette.concurrency import run_in_threadpool
from tms.core_settings import Settings
from tms.domain.models import Base

T = TypeVar("T")

def build_engine(settings: Settings) -> Engine:
    url = settings.database_url
    if url.startswith("sqlite"):
        # In-memory SQLite must share one connection across threads
        return create_engine(
            url,
            echo=False,
            future=True,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    return create_engine(url, echo=False, future=True, pool_pre_ping=True)

def build_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(bind=engine, autoflush=False, autocommit=False, expire_on_commit=False)

def get_db(request: Request) -> Iterator[Session]:
    db = request.app.state.session_factory()
    try:
        yield db
    finally:
        db.close()

def init_models(engine: Engine):
    Base.metadata.create_all(engine)

class SessionRunner:
    """Run blocking work against one request's Session off the event loop.

    Calls go to the threadpool one at a time: sibling GraphQL fields resolve
    concurrently but a Session must only be used by one thread at once.
    """

    def __init__(self, db: Session):
        self.db = db
        self._lock = asyncio.Lock()

    async def __call__(self, fn: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        async with self._lock:
            return await run_in_threadpool(fn, *args, **kwargs)
