from __future__ import annotations

from sqlalchemy.orm import Session, sessionmaker

from pokerledger.config import settings
from pokerledger.service import LedgerService, SettlementService
from pokerledger.storage.database import Base, SessionLocal, engine
from pokerledger.storage.repository import LedgerRepository


class Services:
    def __init__(self, session_factory: sessionmaker[Session], undo_window_seconds: int = 30) -> None:
        self.repo = LedgerRepository(session_factory)
        self.ledger = LedgerService(self.repo, undo_window_seconds=undo_window_seconds)
        self.settlement = SettlementService(self.repo, repo=self.repo)


def init_db() -> None:
    Base.metadata.create_all(bind=engine)


services = Services(SessionLocal, undo_window_seconds=settings.undo_window_seconds)


def get_services() -> Services:
    return services
