from __future__ import annotations

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.api.v1.routes import health, network, opportunities, paths, relationships, scores
from app.core.config import get_settings
from app.core.logging import configure_logging
from app.db.pg.base import Base
from app.db.pg import models as _models  # noqa: F401
from app.db.pg.session import engine

configure_logging()
settings = get_settings()
app = FastAPI(title=settings.app_name)
allowed_origins = [origin.strip() for origin in settings.cors_allow_origins.split(",") if origin.strip()]
if allowed_origins:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=allowed_origins,
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )


@app.on_event("startup")
def on_startup() -> None:
    Base.metadata.create_all(bind=engine)


app.include_router(health.router, prefix=settings.api_prefix)
app.include_router(scores.router, prefix=settings.api_prefix)
app.include_router(relationships.router, prefix=settings.api_prefix)
app.include_router(paths.router, prefix=settings.api_prefix)
app.include_router(opportunities.router, prefix=settings.api_prefix)
app.include_router(network.router, prefix=settings.api_prefix)
