import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .config import settings
from .core.errors import LedgerError
from .database import init_db
from .routers import accounts as accounts_router
from .routers import auth as auth_router
from .routers import budgets as budgets_router
from .routers import transactions as transactions_router


logger = logging.getLogger(__name__)


def configure_logging(level: str = None) -> None:
    logging.basicConfig(
        level=(level or settings.log_level).upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def create_app() -> FastAPI:
    configure_logging()
    app = FastAPI(title="Finledger – Personal finance ledger", version="0.1.0")

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.on_event("startup")
    def on_startup():
        init_db()

    @app.exception_handler(LedgerError)
    def handle_ledger_error(request: Request, exc: LedgerError):
        if exc.status_code >= 500:
            logger.error("%s on %s %s: %s", exc.kind, request.method, request.url.path, exc.message)
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.get("/health")
    def health():
        return {"status": "ok"}

    app.include_router(auth_router.router)
    app.include_router(accounts_router.router)
    app.include_router(transactions_router.router)
    app.include_router(budgets_router.router)

    return app


app = create_app()
