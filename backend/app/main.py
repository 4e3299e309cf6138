"""
Personal Accounting API - Main Application Entry Point

Users own accounts, accounts own transactions. Account balances are kept
equal to the signed sum of their transactions.
"""

import logging
from datetime import datetime, timezone

from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.database import check_database, get_db
from app.core.logging_config import configure_logging
from app.core.middleware import register_middleware
from app.core.problems import register_problem_handlers

logger = logging.getLogger(__name__)

# Import module routers
from app.modules.users.router import router as users_router
from app.modules.accounts.router import router as accounts_router
from app.modules.ledger.router import router as ledger_router


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""

    configure_logging(settings.LOG_LEVEL, settings.LOG_FORMAT)

    app = FastAPI(
        title=settings.APP_NAME,
        version=settings.APP_VERSION,
        description="REST API for personal accounting: users, accounts and transactions",
        docs_url="/api/docs",
        redoc_url="/api/redoc",
    )

    # Use ["*"] if CORS_ALLOW_ALL is True (development), otherwise use explicit origins
    cors_origins = ["*"] if settings.CORS_ALLOW_ALL else settings.CORS_ORIGINS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    register_middleware(app)
    register_problem_handlers(app)

    # Register module routers
    app.include_router(users_router, prefix="/api/v1/users", tags=["Users"])
    app.include_router(accounts_router, prefix="/api/v1/accounts", tags=["Accounts"])
    app.include_router(ledger_router, prefix="/api/v1", tags=["Transactions"])

    @app.get("/health", tags=["Health"])
    def health_check(db: Session = Depends(get_db)):
        """Health check including database connectivity."""
        database_ok = check_database(db)
        body = {
            "status": "healthy" if database_ok else "unhealthy",
            "components": {
                "database": {
                    "status": "healthy" if database_ok else "unhealthy",
                    "message": "connected" if database_ok else "database connection failed",
                },
            },
            "timestamp": datetime.now(timezone.utc).isoformat(timespec="seconds"),
        }
        return JSONResponse(status_code=200 if database_ok else 503, content=body)

    @app.on_event("startup")
    async def startup_event():
        logger.info(f"{settings.APP_NAME} {settings.APP_VERSION} started")

    return app


# Create the application instance
app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("app.main:app", host="0.0.0.0", port=8000, reload=True)
