from loguru import logger
from fastapi import FastAPI

from streamrelay.config import CORS_ALLOW_CREDENTIALS, CORS_ORIGINS, DATA_DIR
from streamrelay.utils.logger import config as configure_logger, ensure_log_path

# Ensure STREAMRELAY_LOG_PATH is set so the file sink is attached below.
ensure_log_path(DATA_DIR / "logs")
configure_logger()

from streamrelay._version import get_version
from streamrelay.api import router as api_router
from streamrelay.core.lifespan import lifespan
from streamrelay.cors import apply_cors_middleware

app = FastAPI(title="StreamRelay", version=get_version(), lifespan=lifespan)
apply_cors_middleware(
    app,
    origins=CORS_ORIGINS,
    allow_credentials=CORS_ALLOW_CREDENTIALS,
)
app.include_router(api_router)


# Healthcheck endpoint for CI/CD and monitoring
@app.get("/health")
async def healthcheck():
    return {"status": "ok", "version": get_version()}


if __name__ == "__main__":
    logger.info("Starting StreamRelay FastAPI server...")
    from streamrelay.cli import run_server

    run_server(app)
