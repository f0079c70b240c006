from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from receiptflow.api.router import router as api_router
from receiptflow.bootstrap import bootstrap
from receiptflow.core.logging import RequestContextMiddleware, get_logger, log_event
from receiptflow.modules.categories.service import CategoryBootstrapError
from receiptflow.modules.receipts.status import InvalidStatusTransition

logger = get_logger(__name__)


async def _invalid_transition_handler(_: Request, exc: InvalidStatusTransition) -> JSONResponse:
    return JSONResponse(status_code=status.HTTP_409_CONFLICT, content={"detail": str(exc)})


async def _category_bootstrap_handler(_: Request, exc: CategoryBootstrapError) -> JSONResponse:
    return JSONResponse(status_code=status.HTTP_502_BAD_GATEWAY, content={"detail": str(exc)})


def create_app() -> FastAPI:
    @asynccontextmanager
    async def lifespan(_: FastAPI):
        bootstrap()
        log_event(logger, "app.startup")
        yield

    app = FastAPI(title="Receiptflow", version="0.1.0", lifespan=lifespan)
    app.add_middleware(RequestContextMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_exception_handler(InvalidStatusTransition, _invalid_transition_handler)
    app.add_exception_handler(CategoryBootstrapError, _category_bootstrap_handler)
    app.include_router(api_router)
    return app


app = create_app()
