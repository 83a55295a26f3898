from contextlib import asynccontextmanager
from typing import Optional
import logging

import httpx
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .config import Settings, get_settings
from .database import Database
from .donation_routes import router as donation_router
from .donation_service import DonationService
from .middleware import SECURITY_HEADERS, install_middleware
from .providers import build_providers
from .references import ReferenceGenerator
from .user_routes import router as user_router

logger = logging.getLogger(__name__)


def create_app(
    settings: Optional[Settings] = None,
    references: Optional[ReferenceGenerator] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> FastAPI:
    """
    Build the API. `references` and `transport` let callers swap the clock
    behind local references and the HTTP transport used for Chapa.
    """
    settings = settings or get_settings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format='%(asctime)s %(levelname)s %(name)s: %(message)s',
    )

    db = Database(settings.database_url)
    providers = build_providers(settings, references=references, transport=transport)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        try:
            db.connect()
        except Exception:
            logger.exception('Failed to start server')
            raise
        logger.info('Backend ready on port %s', settings.port)
        yield
        logger.info('Shutting down')
        db.disconnect()

    app = FastAPI(title="Donation API", lifespan=lifespan)
    app.state.settings = settings
    app.state.db = db
    app.state.donation_service = DonationService(db, providers)

    @app.get('/healthz')
    def healthz():
        return {"ok": True}

    @app.exception_handler(RequestValidationError)
    async def invalid_body_handler(request: Request, exc: RequestValidationError):
        logger.warning('Invalid request body on %s: %s', request.url.path, exc.errors())
        return JSONResponse(status_code=400, content={"error": "Invalid request body"})

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.error('Unhandled error: %s', exc, exc_info=exc)
        # answered by ServerErrorMiddleware, outside the header middleware
        return JSONResponse(status_code=500, content={"error": "Internal Server Error"}, headers=SECURITY_HEADERS)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[settings.allowed_origin],
        allow_methods=["*"],
        allow_headers=["*"],
    )
    install_middleware(app, settings)

    app.include_router(donation_router)
    app.include_router(user_router)
    return app


app = create_app()


if __name__ == '__main__':
    import uvicorn

    uvicorn.run(app, host='0.0.0.0', port=get_settings().port)
