# src/utils/responses.py
from typing import Any, Optional

from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from ..exceptions import BusinessLogicError
from ..schemas import OperationResult


def success_response(status_code: int = 200, message: str = "", result: Any = None) -> OperationResult:
    return OperationResult(success=True, status_code=status_code, message=message, result=result)


def failure_response(status_code: int = 400, message: str = "", result: Any = None) -> OperationResult:
    return OperationResult(success=False, status_code=status_code, message=message, result=result)


def failure_from_error(error: BusinessLogicError, result: Optional[Any] = None) -> OperationResult:
    """Turns a taxonomy error into a failure result carrying its status code and message key."""
    return failure_response(status_code=error.status_code, message=error.message, result=result)


def to_json_response(result: OperationResult) -> JSONResponse:
    """Renders a result envelope with its own status code."""
    return JSONResponse(status_code=result.status_code, content=jsonable_encoder(result))
