from fastapi import HTTPException

from walletwise.core.errors import (
    ConflictError,
    LedgerError,
    NotFoundError,
    PartialApplicationError,
    StoreUnavailableError,
    ValidationError,
)

_STATUS = {
    ValidationError: 400,
    NotFoundError: 404,
    ConflictError: 409,
    StoreUnavailableError: 503,
    PartialApplicationError: 500,
}


def to_http(e: LedgerError) -> HTTPException:
    status = next((code for cls, code in _STATUS.items() if isinstance(e, cls)), 500)
    if isinstance(e, ValidationError):
        # keep the reason for form errors, the rest are stable codes
        return HTTPException(status_code=status, detail={"code": e.code, "message": str(e)})
    return HTTPException(status_code=status, detail=e.code)
