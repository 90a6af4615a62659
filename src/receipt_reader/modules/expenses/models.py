from __future__ import annotations

from decimal import Decimal

from sqlalchemy import Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from receipt_reader.core.models import Base, IntegerPrimaryKey, Timestamped


class Expense(IntegerPrimaryKey, Timestamped, Base):
    __tablename__ = "expenses_expense"

    date: Mapped[str] = mapped_column(String(32))
    cost: Mapped[Decimal] = mapped_column(Numeric(12, 2))
    type: Mapped[str] = mapped_column(String(50), index=True)
    vendor: Mapped[str] = mapped_column(String(200), index=True)
    location: Mapped[str] = mapped_column(String(255))
    trip_name: Mapped[str] = mapped_column(String(200), index=True)
    comments: Mapped[str | None] = mapped_column(Text, nullable=True)
    receipt_path: Mapped[str | None] = mapped_column(String(1024), nullable=True)
