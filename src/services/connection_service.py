# src/services/connection_service.py
import logging
from typing import Optional, Tuple

from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from ..config import get_settings
from ..constants import ErrorMessages, ResponseMessages
from ..core.connection_store import ConnectionStore
from ..exceptions import AlreadyExistsError, BusinessLogicError, NotFoundError, UnauthorizedError
from ..models import ConnectionStatus
from ..schemas import OperationResult, PaginatedResult
from ..utils.response_enricher import ResponseEnricher
from ..utils.responses import failure_from_error, failure_response, success_response
from .profile_service import ProfileService
from .visibility_service import VisibilityService

logger = logging.getLogger(__name__)


class ConnectionService:
    """
    Peer connection lifecycle: NONE -> REQUESTED -> ACCEPTED | REJECTED.

    A REJECTED pair is soft-deleted, so the same users may start over with a new request.
    BLOCKED connections are never created here but are honoured everywhere: a blocked user
    looks exactly like a user that does not exist.
    """

    def __init__(self, db: Session, visibility_service: VisibilityService, profile_service: ProfileService):
        self.db = db
        self.store = ConnectionStore(db)
        self.visibility_service = visibility_service
        self.profile_service = profile_service
        self.settings = get_settings()

    def initiate(self, requester_id: str, target_id: str, message: Optional[str] = None) -> OperationResult:
        if requester_id == target_id:
            return failure_response(status_code=400, message=ErrorMessages.CONNECTION_SELF_REQUEST)

        try:
            target = self.profile_service.get_profile(target_id)
            if target is None:
                return failure_from_error(NotFoundError(ErrorMessages.USER_NOT_FOUND))

            connection = self.store.get_connection(requester_id, target_id)
            if connection is not None:
                if connection.status == ConnectionStatus.BLOCKED.value:
                    return failure_from_error(UnauthorizedError())
                return success_response(
                    status_code=200,
                    message=ResponseMessages.CONNECTION_EXISTS,
                    result=ResponseEnricher.serialize_connection(connection)
                )

            viewer = self.visibility_service.resolve_viewer(requester_id)
            if not self.visibility_service.can_view_profile(viewer, target):
                logger.info(f"Connection request from {requester_id} to {target_id} denied by visibility policy")
                return failure_from_error(UnauthorizedError())
        except NotFoundError as e:
            return failure_from_error(e)
        except SQLAlchemyError as e:
            raise self._storage_error("initiate", e)

        try:
            request = self.store.insert_request_pair(requester_id, target_id, message)
        except IntegrityError:
            logger.info(f"Duplicate connection request between {requester_id} and {target_id}")
            return failure_from_error(AlreadyExistsError(ErrorMessages.CONNECTION_REQUEST_EXISTS))
        except SQLAlchemyError as e:
            raise self._storage_error("initiate", e)

        logger.info(f"Connection request sent from {requester_id} to {target_id}")
        return success_response(
            status_code=201,
            message=ResponseMessages.CONNECTION_REQUEST_SEND_SUCCESSFULLY,
            result=ResponseEnricher.serialize_connection(request)
        )

    def accept(self, accepter_id: str, requester_id: str) -> OperationResult:
        try:
            request = self.store.find_one_request(accepter_id, requester_id)
            if request is None:
                return failure_response(status_code=404, message=ErrorMessages.CONNECTION_REQUEST_NOT_FOUND)

            rows = self.store.approve_request_pair(accepter_id, requester_id)
        except NotFoundError as e:
            return failure_from_error(e)
        except IntegrityError:
            logger.warning(f"Connection between {accepter_id} and {requester_id} already exists")
            return failure_from_error(AlreadyExistsError(ResponseMessages.CONNECTION_EXISTS))
        except SQLAlchemyError as e:
            raise self._storage_error("accept", e)

        logger.info(f"Connection request from {requester_id} accepted by {accepter_id}")
        return success_response(
            status_code=201,
            message=ResponseMessages.CONNECTION_REQUEST_APPROVED,
            result=ResponseEnricher.serialize_connection(rows[0])
        )

    def reject(self, rejecter_id: str, requester_id: str) -> OperationResult:
        try:
            request = self.store.find_one_request(rejecter_id, requester_id)
            if request is None:
                return failure_response(status_code=404, message=ErrorMessages.CONNECTION_REQUEST_NOT_FOUND)

            self.store.reject_request_pair(rejecter_id, requester_id)
        except NotFoundError as e:
            return failure_from_error(e)
        except SQLAlchemyError as e:
            raise self._storage_error("reject", e)

        logger.info(f"Connection request from {requester_id} rejected by {rejecter_id}")
        return success_response(status_code=201, message=ResponseMessages.CONNECTION_REQUEST_REJECTED)

    def pending(self, user_id: str, page: int = 1, page_size: Optional[int] = None) -> OperationResult:
        """Requests waiting for ``user_id`` to answer, each with the requester's public profile."""
        page, page_size = self.page_bounds(page, page_size)
        try:
            count, rows = self.store.get_pending_requests(user_id, page, page_size)
            profiles = self.profile_service.get_profiles(row.friend_id for row in rows)
        except SQLAlchemyError as e:
            raise self._storage_error("pending", e)

        data = ResponseEnricher.enrich_connections(rows, profiles)
        return success_response(
            status_code=200,
            message=ResponseMessages.CONNECTION_LIST,
            result=PaginatedResult(count=count, data=data).model_dump()
        )

    def list_connections(self, user_id: str, page: int = 1, page_size: Optional[int] = None) -> OperationResult:
        page, page_size = self.page_bounds(page, page_size)
        try:
            count, rows = self.store.get_connections(user_id, page, page_size)
            profiles = self.profile_service.get_profiles(row.friend_id for row in rows)
        except SQLAlchemyError as e:
            raise self._storage_error("list", e)

        data = ResponseEnricher.enrich_connections(rows, profiles)
        return success_response(
            status_code=200,
            message=ResponseMessages.CONNECTION_LIST,
            result=PaginatedResult(count=count, data=data).model_dump()
        )

    def get_connection_info(self, user_id: str, friend_id: str) -> OperationResult:
        """
        Relationship between two users together with the other user's public profile.

        Looks up an ACCEPTED/BLOCKED connection, then a pending request in either direction,
        then the latest rejected request. Without an accepted or pending relationship the
        viewer must be allowed to see ``friend_id`` under its organization's policy.
        """
        try:
            connection = self.store.get_connection(user_id, friend_id)
            if connection is not None and connection.status == ConnectionStatus.BLOCKED.value:
                return failure_from_error(UnauthorizedError())

            relationship = connection or self.store.find_request_any_direction(user_id, friend_id)
            live = relationship is not None
            if relationship is None:
                relationship = self.store.find_rejected_request(user_id, friend_id)

            target = self.profile_service.get_profile(friend_id)
            if target is None:
                return failure_from_error(NotFoundError(ErrorMessages.USER_NOT_FOUND))

            if not live:
                viewer = self.visibility_service.resolve_viewer(user_id)
                if not self.visibility_service.can_view_profile(viewer, target):
                    return failure_from_error(UnauthorizedError())
        except NotFoundError as e:
            return failure_from_error(e)
        except SQLAlchemyError as e:
            raise self._storage_error("info", e)

        return success_response(
            status_code=200,
            message=ResponseMessages.CONNECTION_DETAILS,
            result={
                "connection": ResponseEnricher.serialize_connection(relationship) if relationship else None,
                "user_details": self.profile_service.redact(target),
            }
        )

    def page_bounds(self, page: Optional[int], page_size: Optional[int]) -> Tuple[int, int]:
        page = max(1, page or 1)
        page_size = page_size or self.settings.CONNECTIONS_DEFAULT_PAGE_SIZE
        return page, max(1, min(page_size, self.settings.CONNECTIONS_MAX_PAGE_SIZE))

    def _storage_error(self, operation: str, error: SQLAlchemyError) -> BusinessLogicError:
        self.db.rollback()
        logger.error(f"Storage error during connection {operation}: {error}")
        return BusinessLogicError(ErrorMessages.CONNECTION_STORAGE_ERROR, status_code=500)
