"""
Persistence backends for conversation memory and the decision log.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from contextlib import nullcontext
from datetime import datetime
from typing import List, Optional

from sqlalchemy import JSON, Column, DateTime, Integer, String, Text, Index, delete, or_, select
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import DeclarativeBase, sessionmaker
from sqlalchemy.pool import StaticPool

from ensemble.models.orchestration_models import (
    DecisionLogEntry,
    LongTermMemory,
    MemoryRecord
)


logger = logging.getLogger(__name__)


class MemoryBackend(ABC):
    """
    Storage contract for memory and decisions.

    Reads return newest first; ties on timestamp are broken by insertion order.
    """

    @abstractmethod
    async def add_short_term(self, record: MemoryRecord):
        """Append a conversation turn."""

    @abstractmethod
    async def recent_short_term(self, session_id: str, limit: int) -> List[MemoryRecord]:
        """Most recent turns of a session, newest first."""

    @abstractmethod
    async def clear_short_term(self, session_id: str) -> int:
        """Delete the turns of a session and return how many were removed."""

    @abstractmethod
    async def add_long_term(self, memory: LongTermMemory):
        """Store a long-term memory."""

    @abstractmethod
    async def search_long_term(self, user_id: str, term: str) -> List[LongTermMemory]:
        """Memories whose title, content or tags contain the term, most important first."""

    @abstractmethod
    async def add_decision(self, entry: DecisionLogEntry):
        """Append a decision log entry."""

    @abstractmethod
    async def recent_decisions(
        self,
        user_id: str,
        decision_type: Optional[str] = None,
        limit: int = 100
    ) -> List[DecisionLogEntry]:
        """Most recent decisions of a user, newest first."""

    async def close(self):
        """Release backend resources."""


class InMemoryBackend(MemoryBackend):
    """Process-local backend keeping everything in lists."""

    def __init__(self):
        self._short_term: List[MemoryRecord] = []
        self._long_term: List[LongTermMemory] = []
        self._decisions: List[DecisionLogEntry] = []

    async def add_short_term(self, record: MemoryRecord):
        self._short_term.append(record)

    async def recent_short_term(self, session_id: str, limit: int) -> List[MemoryRecord]:
        rows = [r for r in self._short_term if r.session_id == session_id]
        return list(reversed(rows))[:limit]

    async def clear_short_term(self, session_id: str) -> int:
        before = len(self._short_term)
        self._short_term = [r for r in self._short_term if r.session_id != session_id]
        return before - len(self._short_term)

    async def add_long_term(self, memory: LongTermMemory):
        self._long_term.append(memory)

    async def search_long_term(self, user_id: str, term: str) -> List[LongTermMemory]:
        needle = term.lower()
        matches = [
            m for m in self._long_term
            if m.user_id == user_id and (
                needle in m.title.lower()
                or needle in m.content.lower()
                or any(needle in tag.lower() for tag in m.tags)
            )
        ]
        # Stable sort keeps newer rows ahead within equal importance
        matches = list(reversed(matches))
        return sorted(matches, key=lambda m: m.importance, reverse=True)

    async def add_decision(self, entry: DecisionLogEntry):
        self._decisions.append(entry)

    async def recent_decisions(
        self,
        user_id: str,
        decision_type: Optional[str] = None,
        limit: int = 100
    ) -> List[DecisionLogEntry]:
        rows = [
            d for d in self._decisions
            if d.user_id == user_id and (decision_type is None or d.decision_type == decision_type)
        ]
        return list(reversed(rows))[:limit]


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""

    pass


class ShortTermMemoryRow(Base):
    """Table: short_term_memory"""

    __tablename__ = "short_term_memory"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(255), nullable=False)
    session_id = Column(String(255), nullable=False)
    message_type = Column(String(32), nullable=False)  # user|assistant
    content = Column(Text, nullable=False)
    metadata_json = Column("metadata", JSON, nullable=False, default=dict)
    created_at = Column(DateTime, nullable=False, default=datetime.now)

    __table_args__ = (Index("idx_short_term_session", "session_id", "id"),)


class LongTermMemoryRow(Base):
    """Table: long_term_memory"""

    __tablename__ = "long_term_memory"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(255), nullable=False)
    category = Column(String(64), nullable=False)
    title = Column(Text, nullable=False)
    content = Column(Text, nullable=False)
    tags = Column(JSON, nullable=False, default=list)
    importance = Column(Integer, nullable=False, default=5)
    updated_at = Column(DateTime, nullable=False, default=datetime.now)

    __table_args__ = (Index("idx_long_term_user", "user_id", "importance"),)


class DecisionLogRow(Base):
    """Table: decision_log"""

    __tablename__ = "decision_log"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(255), nullable=False)
    session_id = Column(String(255), nullable=True)
    decision_type = Column(String(64), nullable=False)
    input = Column(Text, nullable=False)
    process = Column(JSON, nullable=False, default=dict)
    output = Column(Text, nullable=False, default="")
    providers_used = Column(JSON, nullable=False, default=list)
    created_at = Column(DateTime, nullable=False, default=datetime.now)

    __table_args__ = (Index("idx_decision_user_type", "user_id", "decision_type", "id"),)

    def __repr__(self) -> str:
        return f"<DecisionLogRow(id={self.id}, user={self.user_id}, type={self.decision_type})>"


def normalize_database_url(database_url: str) -> str:
    """
    Normalize a database URL to an async SQLAlchemy driver.

    Supports:
    - sqlite:// and sqlite:///path (mapped to sqlite+aiosqlite)
    - postgresql:// and postgres:// (mapped to postgresql+asyncpg)
    - URLs already naming a driver, returned unchanged
    """
    scheme, sep, rest = database_url.partition("://")
    if not sep or "+" in scheme:
        return database_url
    if scheme == "sqlite":
        return f"sqlite+aiosqlite://{rest}"
    if scheme in ("postgresql", "postgres"):
        return f"postgresql+asyncpg://{rest}"
    return database_url


class SqlAlchemyBackend(MemoryBackend):
    """
    Relational backend built on the SQLAlchemy async engine.

    Any SQLAlchemy URL works; an in-memory SQLite database is used by default.
    Tables are created on first use.
    """

    def __init__(self, database_url: str = "sqlite://", echo: bool = False):
        database_url = normalize_database_url(database_url)
        engine_kwargs = {"echo": echo}
        # Sessions on the shared in-memory connection must not interleave
        self._connection_guard = nullcontext()
        if database_url in ("sqlite+aiosqlite://", "sqlite+aiosqlite:///:memory:"):
            engine_kwargs["poolclass"] = StaticPool
            self._connection_guard = asyncio.Lock()

        self.engine = create_async_engine(database_url, **engine_kwargs)
        self._session_factory = sessionmaker(self.engine, class_=AsyncSession, expire_on_commit=False)
        self._schema_ready = False
        self._schema_lock = asyncio.Lock()
        logger.info(f"Initialized SQL backend on {self.engine.url.render_as_string(hide_password=True)}")

    async def _ensure_schema(self):
        if self._schema_ready:
            return
        async with self._schema_lock:
            if not self._schema_ready:
                async with self.engine.begin() as conn:
                    await conn.run_sync(Base.metadata.create_all)
                self._schema_ready = True

    async def add_short_term(self, record: MemoryRecord):
        await self._ensure_schema()
        async with self._connection_guard, self._session_factory() as session:
            session.add(ShortTermMemoryRow(
                user_id=record.user_id,
                session_id=record.session_id,
                message_type=record.role,
                content=record.content,
                metadata_json=record.metadata,
                created_at=record.timestamp
            ))
            await session.commit()

    async def recent_short_term(self, session_id: str, limit: int) -> List[MemoryRecord]:
        stmt = (
            select(ShortTermMemoryRow)
            .where(ShortTermMemoryRow.session_id == session_id)
            .order_by(ShortTermMemoryRow.id.desc())
            .limit(limit)
        )
        await self._ensure_schema()
        async with self._connection_guard, self._session_factory() as session:
            result = await session.execute(stmt)
            return [
                MemoryRecord(
                    user_id=row.user_id,
                    session_id=row.session_id,
                    role=row.message_type,
                    content=row.content,
                    metadata=row.metadata_json or {},
                    timestamp=row.created_at
                )
                for row in result.scalars().all()
            ]

    async def clear_short_term(self, session_id: str) -> int:
        await self._ensure_schema()
        async with self._connection_guard, self._session_factory() as session:
            result = await session.execute(
                delete(ShortTermMemoryRow).where(ShortTermMemoryRow.session_id == session_id)
            )
            await session.commit()
            return result.rowcount

    async def add_long_term(self, memory: LongTermMemory):
        await self._ensure_schema()
        async with self._connection_guard, self._session_factory() as session:
            session.add(LongTermMemoryRow(
                user_id=memory.user_id,
                category=memory.category,
                title=memory.title,
                content=memory.content,
                tags=list(memory.tags),
                importance=memory.importance,
                updated_at=memory.updated_at
            ))
            await session.commit()

    async def search_long_term(self, user_id: str, term: str) -> List[LongTermMemory]:
        pattern = f"%{term}%"
        stmt = (
            select(LongTermMemoryRow)
            .where(LongTermMemoryRow.user_id == user_id)
            .where(or_(
                LongTermMemoryRow.title.ilike(pattern),
                LongTermMemoryRow.content.ilike(pattern),
                LongTermMemoryRow.tags.cast(Text).ilike(pattern)
            ))
            .order_by(LongTermMemoryRow.importance.desc(), LongTermMemoryRow.id.desc())
        )
        await self._ensure_schema()
        async with self._connection_guard, self._session_factory() as session:
            result = await session.execute(stmt)
            return [
                LongTermMemory(
                    user_id=row.user_id,
                    category=row.category,
                    title=row.title,
                    content=row.content,
                    tags=list(row.tags or []),
                    importance=row.importance,
                    updated_at=row.updated_at
                )
                for row in result.scalars().all()
            ]

    async def add_decision(self, entry: DecisionLogEntry):
        await self._ensure_schema()
        async with self._connection_guard, self._session_factory() as session:
            session.add(DecisionLogRow(
                user_id=entry.user_id,
                session_id=entry.session_id,
                decision_type=entry.decision_type,
                input=entry.input,
                process=entry.process,
                output=entry.output,
                providers_used=list(entry.providers_used),
                created_at=entry.timestamp
            ))
            await session.commit()

    async def recent_decisions(
        self,
        user_id: str,
        decision_type: Optional[str] = None,
        limit: int = 100
    ) -> List[DecisionLogEntry]:
        stmt = select(DecisionLogRow).where(DecisionLogRow.user_id == user_id)
        if decision_type is not None:
            stmt = stmt.where(DecisionLogRow.decision_type == decision_type)
        stmt = stmt.order_by(DecisionLogRow.id.desc()).limit(limit)

        await self._ensure_schema()
        async with self._connection_guard, self._session_factory() as session:
            result = await session.execute(stmt)
            return [
                DecisionLogEntry(
                    user_id=row.user_id,
                    session_id=row.session_id,
                    decision_type=row.decision_type,
                    input=row.input,
                    process=row.process or {},
                    output=row.output,
                    providers_used=list(row.providers_used or []),
                    timestamp=row.created_at
                )
                for row in result.scalars().all()
            ]

    async def close(self):
        await self.engine.dispose()
