from __future__ import annotations

from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from dinein.application.ports.repositories import UnitOfWork
from dinein.infrastructure.db.repositories.order_repo import SqlAlchemyOrderRepository
from dinein.infrastructure.db.repositories.session_repo import SqlAlchemySessionRepository
from dinein.infrastructure.db.repositories.table_repo import SqlAlchemyTableRepository
from dinein.infrastructure.db.repositories.voucher_repo import SqlAlchemyVoucherRepository
from dinein.infrastructure.db.session import get_engine


class SqlAlchemyUnitOfWork(UnitOfWork):
    """One ORM session per use case call; rolled back unless committed."""

    def __init__(self, engine: Engine | None = None) -> None:
        self._session_factory = sessionmaker(bind=engine or get_engine(), expire_on_commit=False)
        self._session: Session | None = None
        self._committed = False

    def __enter__(self) -> SqlAlchemyUnitOfWork:
        self._session = self._session_factory()
        self._committed = False
        self.tables = SqlAlchemyTableRepository(self._session)
        self.sessions = SqlAlchemySessionRepository(self._session)
        self.orders = SqlAlchemyOrderRepository(self._session)
        self.vouchers = SqlAlchemyVoucherRepository(self._session)
        return self

    def __exit__(self, *args: object) -> None:
        if self._session is None:
            return
        try:
            if not self._committed:
                self._session.rollback()
        finally:
            self._session.close()
            self._session = None

    def commit(self) -> None:
        if self._session is None:
            raise RuntimeError("unit of work is not active")
        self._session.commit()
        self._committed = True

    def rollback(self) -> None:
        if self._session is not None:
            self._session.rollback()
