from typing import List, Optional
from sqlalchemy.orm import Session
from strawberry.dataloader import DataLoader
from tms.core_settings import Settings
from tms.domain.models import User
from tms.infrastructure.db import SessionRunner
from .service import UserService

def create_user_loader(
    db: Session, settings: Settings, run_db: Optional[SessionRunner] = None
) -> DataLoader[str, Optional[User]]:
    """Per-request loader coalescing user lookups into one query per batch.

    Keys requested in the same tick are de-duplicated before the query; every
    caller gets its own result in request order, with repeated ids resolving
    to the same object. Missing users resolve to ``None``. The query runs
    through ``run_db`` so it shares the request's session lock.
    """
    service = UserService(db, settings)
    run_db = run_db or SessionRunner(db)

    async def load_users(user_ids: List[str]) -> List[Optional[User]]:
        users = await run_db(service.get_many, user_ids)
        user_map = {user.id: user for user in users}
        return [user_map.get(user_id) for user_id in user_ids]

    return DataLoader(load_fn=load_users)
