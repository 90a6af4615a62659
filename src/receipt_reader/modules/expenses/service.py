from __future__ import annotations

from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.orm import Session

from receipt_reader.modules.expenses.models import Expense
from receipt_reader.modules.expenses.schemas import ExpenseRecord


def create_expense(session: Session, *, record: ExpenseRecord) -> Expense:
    expense = Expense(
        date=record.date,
        cost=Decimal(record.cost).quantize(Decimal("0.01")),
        type=record.type,
        vendor=record.vendor[:200],
        location=record.location[:255],
        trip_name=record.trip_name,
        comments=record.comments or None,
        receipt_path=record.receipt_path,
    )
    session.add(expense)
    session.commit()
    session.refresh(expense)
    return expense


def list_expenses(session: Session, *, trip_name: str | None = None) -> list[Expense]:
    stmt = select(Expense).order_by(Expense.id)
    if trip_name:
        stmt = stmt.where(Expense.trip_name == trip_name)
    return list(session.scalars(stmt))


class ExpenseRepository:
    def create_expense(self, record: ExpenseRecord) -> int:  # pragma: no cover
        raise NotImplementedError


class SqlExpenseRepository(ExpenseRepository):
    def __init__(self, session: Session):
        self._session = session

    def create_expense(self, record: ExpenseRecord) -> int:
        try:
            return create_expense(self._session, record=record).id
        except Exception:
            self._session.rollback()
            raise
