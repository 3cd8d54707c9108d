"""Service-level exceptions and their HTTP mapping.

Services raise these instead of HTTPException so they stay usable outside a
request (scripts, tests). The handler registered in server.py turns them into
JSON error responses.
"""

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse


class ServiceError(Exception):
    status_code = 400

    def __init__(self, detail: str, **extra):
        super().__init__(detail)
        self.detail = detail
        self.extra = extra


class NotFoundError(ServiceError):
    status_code = 404


class PermissionDeniedError(ServiceError):
    status_code = 403


class InvalidStateError(ServiceError):
    status_code = 400


class ConflictError(ServiceError):
    status_code = 409


class PaymentRequiredError(ServiceError):
    status_code = 402

    def __init__(self, detail: str, price: float | None, currency: str):
        super().__init__(detail, price=price, currency=currency, requires_payment=True)


class InvitationRequiredError(ServiceError):
    status_code = 403

    def __init__(self, detail: str):
        super().__init__(detail, requires_invitation=True)


class AuthRequiredError(ServiceError):
    status_code = 401


async def _service_error_handler(request: Request, exc: ServiceError) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail, **exc.extra},
    )


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ServiceError, _service_error_handler)
