from __future__ import annotations

from typing import Any, Optional
import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry
from loguru import logger

from streamrelay.config import DEFAULT_USER_AGENT
from streamrelay.utils.logger import config as configure_logger

configure_logger()

_SESSION: Optional[requests.Session] = None


def _build_session() -> requests.Session:
    s = requests.Session()
    # Conservative retry policy for transient catalog hiccups
    retry = Retry(
        total=3,
        connect=3,
        read=2,
        backoff_factor=0.5,
        status_forcelist=(429, 500, 502, 503, 504),
        allowed_methods=("GET", "HEAD", "OPTIONS"),
        respect_retry_after_header=True,
    )
    adapter = HTTPAdapter(max_retries=retry, pool_connections=10, pool_maxsize=20)
    s.mount("http://", adapter)
    s.mount("https://", adapter)
    s.headers.update({"User-Agent": DEFAULT_USER_AGENT, "Accept": "application/json"})
    logger.debug("HTTP client session created with retry policy")
    return s


def get_session() -> requests.Session:
    global _SESSION
    if _SESSION is None:
        _SESSION = _build_session()
    return _SESSION


def close_session() -> None:
    global _SESSION
    if _SESSION is not None:
        _SESSION.close()
        _SESSION = None
        logger.debug("HTTP client session closed")


def get(url: str, *, timeout: float | int = 20, **kwargs: Any) -> requests.Response:
    s = get_session()
    try:
        return s.get(url, timeout=timeout, **kwargs)
    except requests.exceptions.ContentDecodingError:
        headers = dict(kwargs.get("headers") or {})
        headers["Accept-Encoding"] = "identity"
        logger.warning("HTTP GET retry with Accept-Encoding=identity due to decode error")
        kwargs = {k: v for k, v in kwargs.items() if k != "headers"}
        return s.get(url, timeout=timeout, headers=headers, **kwargs)
