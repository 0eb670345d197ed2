import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from project_factory.api.routers.data_manage import router as data_manage_router
from project_factory.core.cache import TTLCache
from project_factory.core.config import settings
from project_factory.core.errors import ProjectFactoryError, error_response
from project_factory.db.session import SessionLocal
from project_factory.services.clients import AppServices, ServiceClients
from project_factory.services.event_bus import build_event_bus

logger = logging.getLogger(__name__)


def default_services() -> AppServices:
    return AppServices(
        clients=ServiceClients(TTLCache(settings.CACHE_TTL_SECONDS, settings.CACHE_MAX_ENTRIES)),
        event_bus=build_event_bus(),
        session_factory=SessionLocal,
    )


def create_app(services: AppServices | None = None) -> FastAPI:
    app = FastAPI(title="Project Factory API")
    app.state.services = services or default_services()

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(ProjectFactoryError)
    async def _project_factory_error(_request: Request, exc: ProjectFactoryError):
        return JSONResponse(
            status_code=exc.status_code,
            content=error_response(exc.code, exc.message, exc.description, exc.params),
        )

    @app.exception_handler(RequestValidationError)
    async def _validation_error(_request: Request, exc: RequestValidationError):
        logger.info("request_validation_failed errors=%s", len(exc.errors()))
        return JSONResponse(
            status_code=400,
            content=error_response(
                "VALIDATION_ERROR",
                "Validation Error",
                "; ".join(
                    f"{'.'.join(str(part) for part in err.get('loc', ()))}: {err.get('msg')}"
                    for err in exc.errors()
                ),
            ),
        )

    app.include_router(data_manage_router)

    @app.get("/health")
    def health():
        return {"status": "up"}

    return app


app = create_app()
