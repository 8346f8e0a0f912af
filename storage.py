"""
Record store for users and community submissions.

Two interchangeable backends implement the same async interface:

* ``MemoryStorage`` keeps everything in process-local dicts. Ids come from
  per-kind counters starting at 1. Reading and bumping a counter happens
  without an ``await`` in between, so ids stay unique on a single event loop.
  Not shared between worker processes.
* ``DatabaseStorage`` writes through SQLAlchemy from a worker thread; ids and
  ``created_at`` are assigned by the database.

Both return ``get_all_communities()`` in ascending id order, which is also
insertion order.
"""

import logging
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Dict, List, Optional

from fastapi.concurrency import run_in_threadpool
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from errors import DuplicateUsername, PersistenceError
from models import Community, User
from schemas import CommunityCreate, CommunityRecord, UserCreate, UserRecord

logger = logging.getLogger(__name__)


class Storage(ABC):
    @abstractmethod
    async def get_user(self, user_id: int) -> Optional[UserRecord]:
        ...

    @abstractmethod
    async def get_user_by_username(self, username: str) -> Optional[UserRecord]:
        ...

    @abstractmethod
    async def create_user(self, user: UserCreate) -> UserRecord:
        ...

    @abstractmethod
    async def create_community(self, community: CommunityCreate) -> CommunityRecord:
        ...

    @abstractmethod
    async def get_community(self, community_id: int) -> Optional[CommunityRecord]:
        ...

    @abstractmethod
    async def get_all_communities(self) -> List[CommunityRecord]:
        ...


class MemoryStorage(Storage):
    def __init__(self) -> None:
        self._users: Dict[int, UserRecord] = {}
        self._communities: Dict[int, CommunityRecord] = {}
        self._next_user_id = 1
        self._next_community_id = 1

    async def get_user(self, user_id: int) -> Optional[UserRecord]:
        return self._users.get(user_id)

    async def get_user_by_username(self, username: str) -> Optional[UserRecord]:
        return next((user for user in self._users.values() if user.username == username), None)

    async def create_user(self, user: UserCreate) -> UserRecord:
        if any(existing.username == user.username for existing in self._users.values()):
            raise DuplicateUsername(user.username)
        user_id = self._next_user_id
        self._next_user_id += 1
        record = UserRecord(id=user_id, **user.model_dump())
        self._users[user_id] = record
        return record

    async def create_community(self, community: CommunityCreate) -> CommunityRecord:
        community_id = self._next_community_id
        self._next_community_id += 1
        record = CommunityRecord(
            id=community_id,
            created_at=datetime.now(timezone.utc),
            **community.model_dump(),
        )
        self._communities[community_id] = record
        return record

    async def get_community(self, community_id: int) -> Optional[CommunityRecord]:
        return self._communities.get(community_id)

    async def get_all_communities(self) -> List[CommunityRecord]:
        return list(self._communities.values())


class DatabaseStorage(Storage):
    """
    SQLAlchemy-backed store. Every operation opens its own short session in a
    worker thread, so the event loop never waits on the database; any
    SQLAlchemy failure is reported as PersistenceError.
    """

    def __init__(self, session_factory: sessionmaker):
        self._session_factory = session_factory

    def _session(self) -> Session:
        return self._session_factory()

    async def get_user(self, user_id: int) -> Optional[UserRecord]:
        return await run_in_threadpool(self._get_user, user_id)

    async def get_user_by_username(self, username: str) -> Optional[UserRecord]:
        return await run_in_threadpool(self._get_user_by_username, username)

    async def create_user(self, user: UserCreate) -> UserRecord:
        return await run_in_threadpool(self._create_user, user)

    async def create_community(self, community: CommunityCreate) -> CommunityRecord:
        return await run_in_threadpool(self._create_community, community)

    async def get_community(self, community_id: int) -> Optional[CommunityRecord]:
        return await run_in_threadpool(self._get_community, community_id)

    async def get_all_communities(self) -> List[CommunityRecord]:
        return await run_in_threadpool(self._get_all_communities)

    def _get_user(self, user_id: int) -> Optional[UserRecord]:
        try:
            with self._session() as db:
                user = db.get(User, user_id)
                return UserRecord.model_validate(user) if user else None
        except SQLAlchemyError as exc:
            raise PersistenceError("Failed to load user") from exc

    def _get_user_by_username(self, username: str) -> Optional[UserRecord]:
        try:
            with self._session() as db:
                user = db.query(User).filter(User.username == username).first()
                return UserRecord.model_validate(user) if user else None
        except SQLAlchemyError as exc:
            raise PersistenceError("Failed to load user") from exc

    def _create_user(self, user: UserCreate) -> UserRecord:
        try:
            with self._session() as db:
                existing = db.query(User.id).filter(User.username == user.username).first()
                if existing:
                    raise DuplicateUsername(user.username)
                row = User(username=user.username, password=user.password)
                db.add(row)
                db.commit()
                db.refresh(row)
                return UserRecord.model_validate(row)
        except IntegrityError as exc:
            # lost a race against another writer for the same username
            raise DuplicateUsername(user.username) from exc
        except SQLAlchemyError as exc:
            raise PersistenceError("Failed to create user") from exc

    def _create_community(self, community: CommunityCreate) -> CommunityRecord:
        try:
            with self._session() as db:
                row = Community(**community.model_dump())
                db.add(row)
                db.commit()
                db.refresh(row)
                logger.debug("Stored community %s", row.id)
                return CommunityRecord.model_validate(row)
        except SQLAlchemyError as exc:
            raise PersistenceError("Failed to create community") from exc

    def _get_community(self, community_id: int) -> Optional[CommunityRecord]:
        try:
            with self._session() as db:
                row = db.get(Community, community_id)
                return CommunityRecord.model_validate(row) if row else None
        except SQLAlchemyError as exc:
            raise PersistenceError("Failed to load community") from exc

    def _get_all_communities(self) -> List[CommunityRecord]:
        try:
            with self._session() as db:
                rows = db.query(Community).order_by(Community.id.asc()).all()
                return [CommunityRecord.model_validate(row) for row in rows]
        except SQLAlchemyError as exc:
            raise PersistenceError("Failed to load communities") from exc
