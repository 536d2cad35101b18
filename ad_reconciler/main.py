from __future__ import annotations

import logging

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from .ad import (
    AlreadyExistsError,
    DirectoryError,
    HasChildrenError,
    NotFoundError,
    TransportError,
    UnresolvedMemberError,
)
from .bootstrap import initialize_application
from .routers import resources

log = logging.getLogger(__name__)

app = FastAPI(title="AD Reconciler")
app.include_router(resources.router)

_STATUS_BY_ERROR: list[tuple[type[DirectoryError], int]] = [
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (AlreadyExistsError, status.HTTP_409_CONFLICT),
    (HasChildrenError, status.HTTP_409_CONFLICT),
    (UnresolvedMemberError, status.HTTP_422_UNPROCESSABLE_ENTITY),
    (TransportError, status.HTTP_502_BAD_GATEWAY),
]


def error_status(exc: DirectoryError) -> int:
    for cls, code in _STATUS_BY_ERROR:
        if isinstance(exc, cls):
            return code
    return status.HTTP_500_INTERNAL_SERVER_ERROR


@app.exception_handler(DirectoryError)
async def _directory_error(request: Request, exc: DirectoryError) -> JSONResponse:
    code = error_status(exc)
    log.warning("%s %s -> %d: %s", request.method, request.url.path, code, exc)
    body: dict = {"error": type(exc).__name__, "detail": str(exc), "target": exc.target}
    if isinstance(exc, UnresolvedMemberError):
        body["unresolved"] = exc.names
    return JSONResponse(status_code=code, content=body)


@app.on_event("startup")
def _startup() -> None:
    initialize_application()


@app.get("/health")
def health():
    return {"status": "ok"}
