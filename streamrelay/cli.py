from __future__ import annotations

import os
import sys
from loguru import logger

from streamrelay.config import STREAMRELAY_HOST, STREAMRELAY_PORT, STREAMRELAY_RELOAD


def run_server(app_obj):
    """Run the Uvicorn server.

    - Reload only when STREAMRELAY_RELOAD is set (env or .env)
    - Never reload in frozen/packaged runs
    """
    import uvicorn

    is_frozen = getattr(sys, "frozen", False) or hasattr(sys, "_MEIPASS")
    reload_env = os.environ.get("STREAMRELAY_RELOAD")
    if reload_env is not None:
        reload_flag = reload_env.strip().lower() in ("1", "true", "yes", "on")
    else:
        reload_flag = STREAMRELAY_RELOAD
    reload_flag = reload_flag and not is_frozen

    if reload_flag:
        logger.info("Uvicorn reload enabled (development mode).")
        uvicorn.run(
            "streamrelay.main:app",
            host=STREAMRELAY_HOST,
            port=STREAMRELAY_PORT,
            reload=True,
        )
    else:
        logger.info(f"Serving on {STREAMRELAY_HOST}:{STREAMRELAY_PORT}")
        uvicorn.run(
            app_obj,
            host=STREAMRELAY_HOST,
            port=STREAMRELAY_PORT,
            reload=False,
        )


def main() -> None:
    from streamrelay.main import app

    run_server(app)
