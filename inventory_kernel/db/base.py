"""
Module: inventory_kernel.db.base
Responsibility: Declarative bases shared by every ORM model in the kernel
    and the modules.
Architecture position: Kernel > DB.  Lowest import target in the kernel;
    imports nothing from models/, services/, selectors/ or domain/.

Column conventions (type_annotation_map):
    - ``UUID``     -> String(36) via UUIDString, so ids look the same on
      PostgreSQL and SQLite and raw SQL compares them as text.
    - ``Decimal``  -> Numeric(18, 4).  Costs and prices are never floats.
    - ``datetime`` -> timezone-aware DateTime.
    - ``int``      -> BigInteger (stock, quantities, seq).

``created_by`` stores the canonical actor tag ("USER_<id>", "SYSTEM_PAYU",
...); it becomes an Actor again only at the read boundary.
"""

from datetime import datetime
from decimal import Decimal
from typing import ClassVar
from uuid import UUID as PyUUID, uuid4

from sqlalchemy import BigInteger, DateTime, Numeric, String, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import TypeDecorator


class UUIDString(TypeDecorator):
    """UUID column stored as its 36-character text form."""

    impl = String(36)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        return None if value is None else str(value)

    def process_result_value(self, value, dialect):
        return None if value is None else PyUUID(value)


class Base(DeclarativeBase):
    """Every model gets a uuid4 primary key."""

    type_annotation_map: ClassVar[dict] = {
        PyUUID: UUIDString(),
        Decimal: Numeric(18, 4),
        datetime: DateTime(timezone=True),
        int: BigInteger,
    }

    id: Mapped[PyUUID] = mapped_column(UUIDString(), primary_key=True, default=uuid4)


class TrackedBase(Base):
    """
    Adds who/when columns.

    ``created_at`` has a server default but services always pass the
    injected clock's time.  ``updated_at`` is refreshed by the database on
    every UPDATE.
    """

    __abstract__ = True

    created_at: Mapped[datetime] = mapped_column(server_default=func.now(), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        server_default=func.now(), onupdate=func.now(), nullable=False
    )
    created_by: Mapped[str] = mapped_column(String(100), nullable=False)


UUID = PyUUID
