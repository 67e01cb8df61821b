# gateway/api/models.py
"""
Model registry: SQLAlchemy tables plus one store per entity.

The registry owns a single async engine shared by every request; stores
open a short-lived session per call. Row validation happens in
``@validates`` hooks and surfaces as ModelValidationError.
"""
from __future__ import annotations
import re
from datetime import datetime
from typing import Any, Iterable, List, Optional, Sequence

from email_validator import EmailNotValidError, validate_email
from sqlalchemy import DateTime, ForeignKey, Integer, String, Text, func, select, text
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, validates
from sqlalchemy.pool import StaticPool

from gateway.api.auth.password import hash_password
from gateway.api.errors import DatabaseConnectionError, ModelValidationError
from gateway.api.utils.logger import write_log

ROLES = ("DIRECTOR", "MANAGER", "TEACHER", "CAMPUS")
PARENT_RELATIONSHIPS = ("FATHER", "MOTHER", "GUARDIAN")
MIN_PASSWORD_LENGTH = 7

_UNIQUE_FAILED_RE = re.compile(r"UNIQUE constraint failed: \w+\.(\w+)")


class Base(DeclarativeBase):
    pass


def _required(key: str, value: Optional[str]) -> str:
    if value is None or not str(value).strip():
        raise ModelValidationError(f"{key} must not be empty", field=key)
    return str(value).strip()


def _email(key: str, value: Optional[str]) -> str:
    value = _required(key, value)
    try:
        validated = validate_email(value, check_deliverability=False)
    except EmailNotValidError:
        raise ModelValidationError(f"{key} must be a valid email address", field=key) from None
    return validated.normalized.lower()


def _one_of(key: str, value: Optional[str], allowed: Sequence[str]) -> str:
    value = _required(key, value).upper()
    if value not in allowed:
        raise ModelValidationError(f"{key} must be one of {', '.join(allowed)}", field=key)
    return value


class User(Base):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    username: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    role: Mapped[str] = mapped_column(String(16), nullable=False, default="TEACHER")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    @validates("username")
    def _validate_username(self, key, value):
        return _required(key, value)

    @validates("email")
    def _validate_email(self, key, value):
        return _email(key, value)

    @validates("role")
    def _validate_role(self, key, value):
        return _one_of(key, value, ROLES)

    def __repr__(self) -> str:
        return f"<User id={self.id} username={self.username!r} role={self.role}>"


class Student(Base):
    __tablename__ = "students"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    full_name: Mapped[str] = mapped_column(String(128), nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False)
    school: Mapped[Optional[str]] = mapped_column(String(128))
    phone_number: Mapped[Optional[str]] = mapped_column(String(32))
    parent_name: Mapped[Optional[str]] = mapped_column(String(128))
    parent_email: Mapped[Optional[str]] = mapped_column(String(255))
    parent_phone_number: Mapped[Optional[str]] = mapped_column(String(32))
    parent_relationship: Mapped[Optional[str]] = mapped_column(String(16))
    remark: Mapped[Optional[str]] = mapped_column(Text)
    created_by_id: Mapped[Optional[int]] = mapped_column(ForeignKey("users.id"), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    @validates("full_name")
    def _validate_full_name(self, key, value):
        return _required(key, value)

    @validates("email", "parent_email")
    def _validate_emails(self, key, value):
        if value is None and key == "parent_email":
            return None
        return _email(key, value)

    @validates("parent_relationship")
    def _validate_relationship(self, key, value):
        if value is None:
            return None
        return _one_of(key, value, PARENT_RELATIONSHIPS)

    def __repr__(self) -> str:
        return f"<Student id={self.id} full_name={self.full_name!r}>"


class _Store:
    model: Any = None

    def __init__(self, session_factory: async_sessionmaker):
        self._session_factory = session_factory

    async def get(self, id: int):
        async with self._session_factory() as session:
            return await session.get(self.model, id)

    async def find_by_ids(self, ids: Iterable[int]) -> List[Any]:
        ids = list(ids)
        if not ids:
            return []
        async with self._session_factory() as session:
            result = await session.execute(select(self.model).where(self.model.id.in_(ids)))
            return list(result.scalars().all())

    async def list(self) -> List[Any]:
        async with self._session_factory() as session:
            result = await session.execute(select(self.model).order_by(self.model.id))
            return list(result.scalars().all())

    async def count(self) -> int:
        async with self._session_factory() as session:
            result = await session.execute(select(func.count()).select_from(self.model))
            return int(result.scalar_one())

    async def _save(self, row):
        async with self._session_factory() as session:
            session.add(row)
            try:
                await session.commit()
            except IntegrityError as e:
                await session.rollback()
                raise _integrity_to_validation(e) from e
            await session.refresh(row)
            return row


def _integrity_to_validation(error: IntegrityError) -> ModelValidationError:
    match = _UNIQUE_FAILED_RE.search(str(error.orig))
    if match:
        column = match.group(1)
        return ModelValidationError(f"{column} must be unique", field=column)
    return ModelValidationError("row violates a database constraint")


class UserStore(_Store):
    model = User

    async def find_by_email(self, email: str) -> Optional[User]:
        async with self._session_factory() as session:
            result = await session.execute(select(User).where(User.email == (email or "").strip().lower()))
            return result.scalar_one_or_none()

    async def create(self, username: str, email: str, password: str, role: str = "TEACHER") -> User:
        if password is None or len(password) < MIN_PASSWORD_LENGTH:
            raise ModelValidationError(
                f"password must be at least {MIN_PASSWORD_LENGTH} characters", field="password"
            )
        user = User(username=username, email=email, role=role, password_hash=hash_password(password))
        # Check unique columns up front so every backend reports the same message
        async with self._session_factory() as session:
            for column in ("username", "email"):
                value = getattr(user, column)
                taken = await session.execute(select(User.id).where(getattr(User, column) == value))
                if taken.first() is not None:
                    raise ModelValidationError(f"{column} must be unique", field=column)
        return await self._save(user)


class StudentStore(_Store):
    model = Student

    async def create(self, created_by_id: Optional[int] = None, **fields: Any) -> Student:
        student = Student(created_by_id=created_by_id, **fields)
        return await self._save(student)


class ModelRegistry:
    """Named entity accessors over one shared engine."""

    def __init__(self, database_url: str, engine: Optional[AsyncEngine] = None):
        self.engine = engine or create_engine_for_url(database_url)
        self.session_factory = async_sessionmaker(self.engine, expire_on_commit=False)
        self.users = UserStore(self.session_factory)
        self.students = StudentStore(self.session_factory)

    async def connect(self) -> None:
        """Create the tables and make sure the database answers."""
        try:
            async with self.engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
                await conn.execute(text("SELECT 1"))
        except (SQLAlchemyError, OSError) as e:
            raise DatabaseConnectionError(f"could not connect to {self.engine.url.render_as_string()}: {e}") from e
        write_log({"event": "database_connected", "url": self.engine.url.render_as_string()}, stream="system")

    async def close(self) -> None:
        await self.engine.dispose()


def create_engine_for_url(database_url: str) -> AsyncEngine:
    # In-memory SQLite must keep a single connection or every session sees an empty database
    if database_url.startswith("sqlite") and (":memory:" in database_url or database_url.rstrip("/").endswith(":")):
        return create_async_engine(
            database_url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    return create_async_engine(database_url, pool_pre_ping=True)
