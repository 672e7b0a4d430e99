"""Translate domain errors into HTTP responses"""

from fastapi import HTTPException

from keble.domain.errors import FundingAborted, KebleError, NotFoundError, ValidationError


def http_error(exc: KebleError) -> HTTPException:
    if isinstance(exc, ValidationError):
        return HTTPException(status_code=400, detail=str(exc))
    if isinstance(exc, NotFoundError):
        return HTTPException(status_code=404, detail=str(exc))
    if isinstance(exc, FundingAborted):
        return HTTPException(
            status_code=409,
            detail={
                "message": "Funding aborted; no changes were applied.",
                "failed_state": exc.failed_state.value,
                "reasons": exc.reasons,
            },
        )
    return HTTPException(status_code=500, detail=str(exc))
