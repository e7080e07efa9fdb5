from fastapi import FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

from progress_api.api.health import router as health_router
from progress_api.api.metrics import router as metrics_router
from progress_api.api.progress import router as progress_router
from progress_api.core.app_metrics import metrics_middleware
from progress_api.core.errors import (
    FatalFetchError,
    fatal_fetch_handler,
    http_exception_handler,
    request_id_middleware,
    unhandled_exception_handler,
    validation_exception_handler,
)
from progress_api.core.logging import configure_logging
from progress_api.core.settings import settings
from progress_api.store.database import engine


configure_logging(settings.log_level)

app = FastAPI(title="Progress Dashboard API", version="0.1.0")
app.include_router(health_router)
app.include_router(progress_router)
app.include_router(metrics_router)
app.middleware("http")(metrics_middleware)
app.middleware("http")(request_id_middleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_exception_handler(HTTPException, http_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(FatalFetchError, fatal_fetch_handler)
app.add_exception_handler(Exception, unhandled_exception_handler)


@app.on_event("shutdown")
async def on_shutdown():
    await engine.dispose()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host=settings.app_host, port=settings.app_port, log_level=settings.log_level.lower())
