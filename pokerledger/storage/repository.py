from __future__ import annotations

import logging
from datetime import datetime, timezone
from uuid import uuid4

from sqlalchemy import case, func, select, update
from sqlalchemy.orm import Session, sessionmaker

from pokerledger.domain import (
    DomainValidationError,
    InvalidPlayerState,
    Player,
    PlayerNotFound,
    PlayerStatus,
    SessionInfo,
    SessionNotActive,
    SessionNotFound,
    SessionStatus,
    Transaction,
    TransactionNotFound,
    TransactionType,
)
from pokerledger.storage.models import LedgerTransaction, PokerSession, SessionPlayer

logger = logging.getLogger(__name__)


def _as_utc(value: datetime | None) -> datetime | None:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _session_info(row: PokerSession) -> SessionInfo:
    return SessionInfo(
        id=row.id,
        name=row.name,
        status=SessionStatus(row.status),
        created_at=_as_utc(row.created_at),
        started_at=_as_utc(row.started_at),
        completed_at=_as_utc(row.completed_at),
    )


def _transaction(row: LedgerTransaction) -> Transaction:
    return Transaction(
        id=row.id,
        player_id=row.player_id,
        type=TransactionType(row.type),
        amount=row.amount_cents,
        timestamp=_as_utc(row.created_at),
        voided=row.voided,
        void_reason=row.void_reason,
        voided_at=_as_utc(row.voided_at),
    )


def _ensure_active(db: Session, session_id: str) -> None:
    # read inside the writing transaction, row-locked where the database supports it
    status = db.scalar(select(PokerSession.status).where(PokerSession.id == session_id).with_for_update())
    if status is None:
        raise SessionNotFound(f"session {session_id} not found")
    if status != SessionStatus.ACTIVE.value:
        raise SessionNotActive(f"session {session_id} is {status}, ledger writes need an active session")


class LedgerRepository:
    """SQLAlchemy-backed ledger store; implements ``LedgerView`` for the engine."""

    def __init__(self, session_factory: sessionmaker[Session]) -> None:
        self._session_factory = session_factory

    def create_session(self, name: str) -> SessionInfo:
        with self._session_factory() as db:
            row = PokerSession(id=str(uuid4()), name=name, status=SessionStatus.CREATED.value)
            db.add(row)
            db.commit()
            db.refresh(row)
            return _session_info(row)

    def get_session(self, session_id: str) -> SessionInfo | None:
        with self._session_factory() as db:
            row = db.get(PokerSession, session_id)
            return _session_info(row) if row is not None else None

    def update_session_status(
        self,
        session_id: str,
        status: SessionStatus,
        *,
        expected_status: SessionStatus | None = None,
    ) -> SessionInfo:
        """Move a session to ``status``.

        With ``expected_status`` the update is a single conditional UPDATE, so
        two concurrent callers cannot both win the same transition.
        """
        now = datetime.now(timezone.utc)
        values: dict[str, object] = {"status": status.value}
        if status == SessionStatus.ACTIVE:
            values["started_at"] = func.coalesce(PokerSession.started_at, now)
        if status == SessionStatus.COMPLETED:
            values["completed_at"] = now

        stmt = update(PokerSession).where(PokerSession.id == session_id)
        if expected_status is not None:
            stmt = stmt.where(PokerSession.status == expected_status.value)

        with self._session_factory() as db:
            result = db.execute(stmt.values(**values).execution_options(synchronize_session=False))
            if result.rowcount == 0:
                row = db.get(PokerSession, session_id)
                if row is None:
                    raise SessionNotFound(f"session {session_id} not found")
                raise SessionNotActive(f"session {session_id} is {row.status}, expected {expected_status.value}")
            db.commit()
            row = db.get(PokerSession, session_id)
            logger.info("session %s moved to %s", session_id, status.value)
            return _session_info(row)

    def add_player(self, session_id: str, name: str) -> Player:
        with self._session_factory() as db:
            row = SessionPlayer(id=str(uuid4()), session_id=session_id, name=name, status=PlayerStatus.ACTIVE.value)
            db.add(row)
            db.commit()
            return Player(id=row.id, name=row.name, status=PlayerStatus.ACTIVE)

    def player_name_taken(self, session_id: str, name: str) -> bool:
        with self._session_factory() as db:
            row = db.execute(
                select(func.count(SessionPlayer.id)).where(
                    SessionPlayer.session_id == session_id,
                    func.lower(SessionPlayer.name) == name.lower(),
                )
            ).one()
            return bool(row[0])

    def get_players(self, session_id: str) -> list[Player]:
        buy_ins = func.coalesce(
            func.sum(case((LedgerTransaction.type == TransactionType.BUY_IN.value, LedgerTransaction.amount_cents), else_=0)),
            0,
        )
        cash_outs = func.coalesce(
            func.sum(case((LedgerTransaction.type == TransactionType.CASH_OUT.value, LedgerTransaction.amount_cents), else_=0)),
            0,
        )
        with self._session_factory() as db:
            rows = db.execute(
                select(SessionPlayer.id, SessionPlayer.name, SessionPlayer.status, buy_ins, cash_outs)
                .outerjoin(
                    LedgerTransaction,
                    (LedgerTransaction.player_id == SessionPlayer.id) & LedgerTransaction.voided.is_(False),
                )
                .where(SessionPlayer.session_id == session_id)
                .group_by(SessionPlayer.id, SessionPlayer.name, SessionPlayer.status, SessionPlayer.joined_at)
                .order_by(SessionPlayer.joined_at, SessionPlayer.id)
            ).all()
            return [
                Player(
                    id=row[0],
                    name=row[1],
                    status=PlayerStatus(row[2]),
                    total_buy_ins=int(row[3] or 0),
                    total_cash_outs=int(row[4] or 0),
                )
                for row in rows
            ]

    def get_player(self, session_id: str, player_id: str) -> Player | None:
        for player in self.get_players(session_id):
            if player.id == player_id:
                return player
        return None

    def record_transaction(
        self,
        session_id: str,
        player_id: str,
        transaction_type: TransactionType,
        amount: int,
        *,
        player_status: PlayerStatus | None = None,
    ) -> Transaction:
        with self._session_factory() as db:
            player = db.get(SessionPlayer, player_id, with_for_update=True)
            if player is None or player.session_id != session_id:
                raise PlayerNotFound(f"player {player_id} not found in session {session_id}")
            _ensure_active(db, session_id)
            if player.status != PlayerStatus.ACTIVE.value:
                raise InvalidPlayerState(f"player {player_id} is {player.status}")
            row = LedgerTransaction(
                id=str(uuid4()),
                session_id=session_id,
                player_id=player_id,
                type=transaction_type.value,
                amount_cents=amount,
            )
            db.add(row)
            if player_status is not None:
                player.status = player_status.value
            db.commit()
            db.refresh(row)
            return _transaction(row)

    def get_transaction(self, session_id: str, transaction_id: str) -> Transaction | None:
        with self._session_factory() as db:
            row = db.get(LedgerTransaction, transaction_id)
            if row is None or row.session_id != session_id:
                return None
            return _transaction(row)

    def get_transactions(self, session_id: str) -> list[Transaction]:
        with self._session_factory() as db:
            rows = db.scalars(
                select(LedgerTransaction)
                .where(LedgerTransaction.session_id == session_id)
                .order_by(LedgerTransaction.created_at, LedgerTransaction.id)
            ).all()
            return [_transaction(row) for row in rows]

    def get_non_voided_transactions(self, session_id: str) -> list[Transaction]:
        return [transaction for transaction in self.get_transactions(session_id) if not transaction.voided]

    def save_void(self, transaction: Transaction, *, player_status: PlayerStatus | None = None) -> Transaction:
        with self._session_factory() as db:
            row = db.get(LedgerTransaction, transaction.id, with_for_update=True)
            if row is None:
                raise TransactionNotFound(f"transaction {transaction.id} not found")
            _ensure_active(db, row.session_id)
            if row.voided:
                raise DomainValidationError(f"transaction {transaction.id} is already voided")
            row.voided = True
            row.void_reason = transaction.void_reason
            row.voided_at = transaction.voided_at
            if player_status is not None:
                player = db.get(SessionPlayer, row.player_id)
                if player is not None:
                    player.status = player_status.value
            db.commit()
            db.refresh(row)
            return _transaction(row)
