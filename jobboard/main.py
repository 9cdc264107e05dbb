import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager

from . import db
from . import router
from .core import config
from .core.log import configure_logging
from .db.rating_store import RatingStore
from .services.errors import ServiceError
from .services.scoring import GeminiJobScorer

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    await db.create_tables(app.state.engine)
    yield
    await db.close_engine(app.state.engine)


async def service_error_handler(request: Request, exc: ServiceError):
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


async def validation_error_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": "Invalid input data", "errors": jsonable_encoder(exc.errors())},
    )


async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Internal server error"},
    )


def create_app(settings=None, scorer=None):
    if not settings:
        settings = config.get_settings()

    configure_logging(settings)

    app = FastAPI(title="Job Board Recommendations", lifespan=lifespan)

    engine = db.init_db(settings)
    session_maker = db.create_session_maker(engine)

    app.state.settings = settings
    app.state.engine = engine
    app.state.session_maker = session_maker
    app.state.rating_store = RatingStore(session_maker)
    app.state.scorer = scorer or GeminiJobScorer(
        api_key=settings.GEMINI_API_KEY, model_name=settings.GEMINI_MODEL
    )

    app.add_exception_handler(ServiceError, service_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)

    router.init_router_root(app)
    app.include_router(router.get_router(), prefix="/api")

    return app
