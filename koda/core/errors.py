from __future__ import annotations

from typing import Any

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from koda.schemas.common import ErrorResponse


class KodaError(Exception):
    status_code: int = 400
    key: str = "genericError"

    def __init__(self, message: str, *, key: str | None = None, details: list[dict[str, Any]] | None = None):
        super().__init__(message)
        self.message = message
        if key is not None:
            self.key = key
        self.details = details or []


class ValidationError(KodaError):
    status_code = 422
    key = "checkFormFields"

    def __init__(self, message: str = "Please check the form fields.", *, key: str | None = None, details: list[dict[str, Any]] | None = None):
        super().__init__(message, key=key, details=details)

    @property
    def fields(self) -> list[str]:
        out: list[str] = []
        for err in self.details:
            loc = err.get("loc") or ()
            name = ".".join(str(p) for p in loc) if loc else "__root__"
            if name not in out:
                out.append(name)
        return out


class NotFoundError(KodaError):
    status_code = 404
    key = "notFound"


class AuthorizationError(KodaError):
    status_code = 403
    key = "unauthorized"


class DuplicateTransactionError(KodaError):
    status_code = 409
    key = "duplicateTransaction"

    def __init__(self, session_id: str):
        super().__init__(f"Payment session already recorded: {session_id}")
        self.session_id = session_id


class PreconditionError(KodaError):
    status_code = 412
    key = "configureStripe"


async def _koda_error_handler(request: Request, exc: KodaError) -> JSONResponse:
    body = ErrorResponse(code=exc.key, message=exc.message, details=exc.details)
    return JSONResponse(status_code=exc.status_code, content=body.model_dump(mode="json"))


def install_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(KodaError, _koda_error_handler)
