from django.http import Http404
from rest_framework import exceptions
from rest_framework.response import Response
from rest_framework.views import exception_handler

from wallets.errors import AppError, ErrorCode


def _as_app_error(exc):
    if isinstance(exc, (exceptions.NotAuthenticated, exceptions.AuthenticationFailed)):
        return AppError(ErrorCode.AUTH_UNAUTHENTICATED)
    if isinstance(exc, exceptions.PermissionDenied):
        return AppError(ErrorCode.AUTH_PERMISSION_DENIED)
    if isinstance(exc, exceptions.ValidationError):
        return AppError(ErrorCode.SYSTEM_VALIDATION_FAILED, details={"fields": exc.detail})
    if isinstance(exc, exceptions.ParseError):
        return AppError(ErrorCode.SYSTEM_VALIDATION_FAILED, "Malformed request body.")
    if isinstance(exc, exceptions.Throttled):
        return AppError(ErrorCode.RATE_LIMIT_EXCEEDED, details={"wait": exc.wait})
    if isinstance(exc, exceptions.NotFound):
        return AppError(ErrorCode.TXN_NOT_FOUND)
    return None


def api_exception_handler(exc, context):
    """
    Render every error as ``{"error": {code, status, message, details}}``.

    DRF's own exceptions are translated to the matching application code;
    anything DRF does not recognise is left to Django (500).
    """
    if isinstance(exc, AppError):
        return Response({"error": exc.to_dict()}, status=exc.http_status)

    if isinstance(exc, Http404):
        exc = exceptions.NotFound()

    response = exception_handler(exc, context)
    if response is None:
        return None

    app_error = _as_app_error(exc)
    if app_error is None:
        response.data = {
            "error": {
                "code": ErrorCode.SYSTEM_VALIDATION_FAILED.value,
                "status": "invalid-argument",
                "message": str(getattr(exc, "detail", exc)),
                "details": {},
            }
        }
        return response

    response.data = {"error": app_error.to_dict()}
    response.status_code = app_error.http_status
    return response
