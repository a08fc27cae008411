"""SQLAlchemy table definition for ``menus``.

MenuStore talks to the table with plain SQL; the mapped class exists so
``db.create_all`` can build the schema for tests and local development.
"""

from datetime import datetime

from sqlalchemy import DateTime, Integer, String, Text, func, text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    pass


class MenuRow(Base):
    __tablename__ = "menus"
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.current_timestamp()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.current_timestamp()
    )
    title: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    nutrition_value: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    # optimistic concurrency token, bumped by every UPDATE
    version: Mapped[int] = mapped_column(Integer, nullable=False, server_default=text("1"))
