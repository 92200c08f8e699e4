# checkout/api/errors.py
from fastapi import HTTPException

from checkout.domain.errors import ErrorKind, Rejection

_STATUS = {
    ErrorKind.VALIDATION: 400,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.CONFLICT: 400,
    ErrorKind.SECURITY: 400,
    ErrorKind.EXTERNAL: 502,
    ErrorKind.TRANSIENT: 503,
}


def status_for(rejection: Rejection) -> int:
    return _STATUS[rejection.kind]


def unwrap(result):
    """Pass a success value through, turn a Rejection into an HTTPException."""
    if isinstance(result, Rejection):
        raise HTTPException(status_code=status_for(result), detail=result.to_dict())
    return result
