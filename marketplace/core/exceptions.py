"""Exceptions de base et gestionnaires d'erreurs HTTP de l'application.

Chaque exception de domaine hérite d'une des familles ci-dessous, qui porte le
code HTTP associé. Les gestionnaires enregistrés sur l'application transforment
toutes les erreurs en enveloppe `{"success": false, "error": "..."}`.
"""
import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException

logger = logging.getLogger(__name__)


class MarketplaceException(Exception):
    """Classe de base pour toutes les exceptions métier."""
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str):
        self.message = message
        super().__init__(self.message)


class NotFoundError(MarketplaceException):
    status_code = status.HTTP_404_NOT_FOUND


class UnauthorizedError(MarketplaceException):
    status_code = status.HTTP_401_UNAUTHORIZED


class ForbiddenError(MarketplaceException):
    status_code = status.HTTP_403_FORBIDDEN


class BusinessRuleViolation(MarketplaceException):
    """Règle métier non respectée (stock, coupon, transition d'état...)."""
    status_code = status.HTTP_400_BAD_REQUEST


class UpstreamFailure(MarketplaceException):
    """Un service externe (paiement, géocodage) est injoignable ou en erreur."""
    status_code = status.HTTP_502_BAD_GATEWAY


def error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "error": message})


async def marketplace_exception_handler(request: Request, exc: MarketplaceException) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(f"[{request.method} {request.url.path}] {type(exc).__name__}: {exc.message}")
    else:
        logger.info(f"[{request.method} {request.url.path}] {type(exc).__name__}: {exc.message}")
    return error_response(exc.status_code, exc.message)


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    response = error_response(exc.status_code, str(exc.detail))
    if exc.headers:
        response.headers.update(exc.headers)
    return response


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    messages = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ()) if part != "body")
        messages.append(f"{location}: {error.get('msg')}" if location else str(error.get("msg")))
    logger.info(f"[{request.method} {request.url.path}] Requête invalide: {messages}")
    return error_response(status.HTTP_400_BAD_REQUEST, "; ".join(messages))


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(f"[{request.method} {request.url.path}] Erreur inattendue: {exc}")
    return error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, "Erreur interne du serveur.")


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(MarketplaceException, marketplace_exception_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
