# spellapi/main.py
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from .catalog import SpellCatalog, catalog_router
from .config import Settings, get_settings
from .flags import FeatureFlags, LaunchDarklyFeatureFlags, SettingsFeatureFlags
from .storage import InMemorySpellStore, MongoSpellStore, SpellStore

logger = logging.getLogger(__name__)


def build_store(settings: Settings) -> SpellStore:
    if settings.store_backend == "memory":
        logger.warning("Using the in-memory spell store; data is lost on restart")
        return InMemorySpellStore()
    return MongoSpellStore.connect(
        settings.mongo_uri,
        database=settings.mongo_database,
        collection=settings.mongo_collection,
        timeout_ms=settings.mongo_timeout_ms,
    )


def build_flags(settings: Settings) -> FeatureFlags:
    if settings.launchdarkly_sdk_key:
        return LaunchDarklyFeatureFlags.connect(
            settings.launchdarkly_sdk_key, timeout_s=settings.launchdarkly_timeout_s
        )
    return SettingsFeatureFlags(settings.disabled_flags)


@asynccontextmanager
async def lifespan(app: FastAPI):
    app.state.catalog.store.ensure_indexes()
    logger.info("spell API started")
    yield
    app.state.flags.close()
    logger.info("spell API stopped")


def create_app(
    settings: Optional[Settings] = None,
    store: Optional[SpellStore] = None,
    flags: Optional[FeatureFlags] = None,
) -> FastAPI:
    settings = settings or get_settings()
    logging.basicConfig(level=settings.log_level)

    app = FastAPI(
        title="Spell API",
        description=(
            "Catalog of spells from any game system: look up, list, add "
            "and remove spells, and browse the values available as filters."
        ),
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.catalog = SpellCatalog(store if store is not None else build_store(settings))
    app.state.flags = flags if flags is not None else build_flags(settings)

    @app.exception_handler(RequestValidationError)
    async def bad_request(request: Request, exc: RequestValidationError):
        return JSONResponse(status_code=400, content={"detail": "Bad Request"})

    # Health check
    @app.get("/")
    def health_check():
        return {"status": "ok"}

    app.include_router(catalog_router)
    return app


app = create_app()
