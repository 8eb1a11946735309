import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import Response

from api.deps import get_model_breaker
from api.routes.analyze import router as analyze_router
from api.routes.tools import router as tools_router
from core.genre.profiles import load_genre_tables
from infrastructure.metrics import get_metrics_response

logger = logging.getLogger(__name__)


@asynccontextmanager
async def genre_tables_lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    """Parse the genre tables once at startup so a malformed YAML fails the boot, not a request."""
    tables = load_genre_tables()
    logger.info("Genre tables loaded: %d genres, %d rules", len(tables.profiles), len(tables.rules))
    yield


app = FastAPI(title="World Genre Analyzer", lifespan=genre_tables_lifespan)

# CORS — allow the map UI dev servers to call the API
app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        "http://localhost:3000",
        "http://127.0.0.1:3000",
        "http://localhost:8080",
        "http://127.0.0.1:8080",
    ],
    allow_credentials=True,
    allow_methods=["GET", "POST"],
    allow_headers=["*"],
)

app.include_router(analyze_router)
app.include_router(tools_router)


@app.get("/health")
def health() -> dict:
    """Liveness check plus the genre model circuit breaker state."""
    return {"status": "ok", "model_breaker": get_model_breaker().status()}


@app.get("/metrics")
def metrics() -> Response:
    """Expose analyzer counters and histograms in Prometheus text format (empty without prometheus_client)."""
    body, content_type = get_metrics_response()
    return Response(content=body, media_type=content_type)
