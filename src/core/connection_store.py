# src/core/connection_store.py
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import and_, case, or_
from sqlalchemy.orm import Session
from sqlalchemy.exc import SQLAlchemyError

from ..constants import ErrorMessages
from ..exceptions import BusinessLogicError, InvariantViolationError, NotFoundError
from ..models import Connection, ConnectionRequest, ConnectionStatus

logger = logging.getLogger(__name__)

PAIR_SIZE = 2


def _pair_filter(model, user_id: str, friend_id: str):
    return or_(
        and_(model.user_id == user_id, model.friend_id == friend_id),
        and_(model.user_id == friend_id, model.friend_id == user_id),
    )


def _own_row_first(model, user_id: str):
    return case((model.user_id == user_id, 0), else_=1)


class ConnectionStore:
    """
    Storage for connection pairs. Every relationship and every pending request is two
    symmetric rows; this class is the only writer of those rows and writes them in one
    transaction each.
    """

    def __init__(self, db: Session):
        self.db = db

    # --- Writes ---

    def insert_request_pair(self, requester_id: str, target_id: str, message: Optional[str] = None) -> ConnectionRequest:
        """Inserts the REQUESTED pair. A live pair for the same users fails on the unique index."""
        rows = [
            ConnectionRequest(
                user_id=user_id,
                friend_id=friend_id,
                status=ConnectionStatus.REQUESTED.value,
                created_by=requester_id,
                updated_by=requester_id,
                meta={"message": message},
            )
            for user_id, friend_id in ((requester_id, target_id), (target_id, requester_id))
        ]
        try:
            self.db.add_all(rows)
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            raise
        self.db.refresh(rows[0])
        return rows[0]

    def approve_request_pair(self, accepter_id: str, requester_id: str) -> List[Connection]:
        """
        Replaces the REQUESTED pair sent by ``requester_id`` with an ACCEPTED connection pair.

        Raises ``NotFoundError`` when the pair is already gone, which is how a caller that lost a
        race with another accept or reject sees it.
        """
        try:
            pending = self._lock_request_pair(accepter_id, requester_id)
            self._check_pair("approve", accepter_id, requester_id, len(pending))
            meta = pending[0].meta

            deleted = self.db.query(ConnectionRequest).filter(
                ConnectionRequest.id.in_([row.id for row in pending]),
                ConnectionRequest.deleted_at.is_(None)
            ).delete(synchronize_session=False)
            self._check_pair("approve", accepter_id, requester_id, deleted)

            rows = [
                Connection(
                    user_id=user_id,
                    friend_id=friend_id,
                    status=ConnectionStatus.ACCEPTED.value,
                    created_by=requester_id,
                    updated_by=accepter_id,
                    meta=meta,
                )
                for user_id, friend_id in ((accepter_id, requester_id), (requester_id, accepter_id))
            ]
            self.db.add_all(rows)
            self.db.commit()
        except (BusinessLogicError, SQLAlchemyError):
            self.db.rollback()
            raise

        for row in rows:
            self.db.refresh(row)
        return rows

    def reject_request_pair(self, rejecter_id: str, requester_id: str) -> int:
        """Soft-deletes the REQUESTED pair sent by ``requester_id``. Raises ``NotFoundError`` when it is gone."""
        try:
            pending = self._lock_request_pair(rejecter_id, requester_id)
            self._check_pair("reject", rejecter_id, requester_id, len(pending))

            updated = self.db.query(ConnectionRequest).filter(
                ConnectionRequest.id.in_([row.id for row in pending]),
                ConnectionRequest.status == ConnectionStatus.REQUESTED.value,
                ConnectionRequest.deleted_at.is_(None)
            ).update(
                {
                    "status": ConnectionStatus.REJECTED.value,
                    "updated_by": rejecter_id,
                    "deleted_at": datetime.now(timezone.utc),
                },
                synchronize_session=False
            )
            self._check_pair("reject", rejecter_id, requester_id, updated)
            self.db.commit()
        except (BusinessLogicError, SQLAlchemyError):
            self.db.rollback()
            raise
        return updated

    def _lock_request_pair(self, user_id: str, requester_id: str) -> List[ConnectionRequest]:
        """Live REQUESTED rows sent by ``requester_id``, locked until the transaction ends."""
        return self.db.query(ConnectionRequest).filter(
            _pair_filter(ConnectionRequest, user_id, requester_id),
            ConnectionRequest.status == ConnectionStatus.REQUESTED.value,
            ConnectionRequest.created_by == requester_id,
            ConnectionRequest.deleted_at.is_(None)
        ).order_by(_own_row_first(ConnectionRequest, user_id)).populate_existing().with_for_update().all()

    def _check_pair(self, operation: str, user_id: str, friend_id: str, count: int):
        if count == 0:
            logger.info(f"No pending connection request to {operation} between {user_id} and {friend_id}")
            raise NotFoundError(ErrorMessages.CONNECTION_REQUEST_NOT_FOUND)
        if count != PAIR_SIZE:
            logger.critical(
                f"Torn connection request pair during {operation} between {user_id} and {friend_id}: "
                f"expected {PAIR_SIZE} rows, found {count}"
            )
            raise InvariantViolationError(ErrorMessages.CONNECTION_PAIR_TORN)

    # --- Reads ---

    def find_one_request(self, user_id: str, friend_id: str) -> Optional[ConnectionRequest]:
        """Live REQUESTED row between the two users that was sent by ``friend_id``."""
        return self.db.query(ConnectionRequest).filter(
            _pair_filter(ConnectionRequest, user_id, friend_id),
            ConnectionRequest.status == ConnectionStatus.REQUESTED.value,
            ConnectionRequest.created_by == friend_id,
            ConnectionRequest.deleted_at.is_(None)
        ).order_by(_own_row_first(ConnectionRequest, user_id)).first()

    def find_request_any_direction(self, user_id: str, friend_id: str) -> Optional[ConnectionRequest]:
        return self.db.query(ConnectionRequest).filter(
            _pair_filter(ConnectionRequest, user_id, friend_id),
            ConnectionRequest.status == ConnectionStatus.REQUESTED.value,
            ConnectionRequest.deleted_at.is_(None)
        ).order_by(_own_row_first(ConnectionRequest, user_id)).first()

    def find_rejected_request(self, user_id: str, friend_id: str) -> Optional[ConnectionRequest]:
        return self.db.query(ConnectionRequest).filter(
            _pair_filter(ConnectionRequest, user_id, friend_id),
            ConnectionRequest.status == ConnectionStatus.REJECTED.value,
            ConnectionRequest.deleted_at.isnot(None)
        ).order_by(
            ConnectionRequest.deleted_at.desc(),
            _own_row_first(ConnectionRequest, user_id),
            ConnectionRequest.id.desc()
        ).first()

    def get_connection(self, user_id: str, friend_id: str) -> Optional[Connection]:
        """Live ACCEPTED or BLOCKED connection between the two users, the caller's own row first."""
        return self.db.query(Connection).filter(
            _pair_filter(Connection, user_id, friend_id),
            Connection.status.in_([ConnectionStatus.ACCEPTED.value, ConnectionStatus.BLOCKED.value]),
            Connection.deleted_at.is_(None)
        ).order_by(_own_row_first(Connection, user_id)).first()

    def get_pending_requests(self, user_id: str, page: int, page_size: int) -> Tuple[int, List[ConnectionRequest]]:
        """Requests addressed to ``user_id`` (never the ones it sent), oldest first."""
        query = self.db.query(ConnectionRequest).filter(
            ConnectionRequest.user_id == user_id,
            ConnectionRequest.status == ConnectionStatus.REQUESTED.value,
            ConnectionRequest.created_by != user_id,
            ConnectionRequest.deleted_at.is_(None)
        )
        count = query.count()
        rows = query.order_by(ConnectionRequest.created_at, ConnectionRequest.id).offset((page - 1) * page_size).limit(page_size).all()
        return count, rows

    def get_connections(self, user_id: str, page: int, page_size: int) -> Tuple[int, List[Connection]]:
        query = self.db.query(Connection).filter(
            Connection.user_id == user_id,
            Connection.status == ConnectionStatus.ACCEPTED.value,
            Connection.deleted_at.is_(None)
        )
        count = query.count()
        rows = query.order_by(Connection.created_at, Connection.id).offset((page - 1) * page_size).limit(page_size).all()
        return count, rows
