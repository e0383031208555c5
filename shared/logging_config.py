"""
logging_config.py: centralized logging setup for the Scentra backend.

Called once by each entry point (API app, Lambda handlers) so every module
can simply use ``logging.getLogger(__name__)``.
"""
from __future__ import annotations
import logging
import sys

from .config import settings

LOG_FORMAT = "%(asctime)s - %(levelname)s - [PID:%(process)d] - %(name)s - %(message)s"

def setup_logging(level: str | None = None) -> None:
    """
    Configures the root logger.

    - Level: ``LOG_LEVEL`` from settings unless given
    - Output: stdout, which both uvicorn and CloudWatch pick up
    - botocore, boto3 and httpx are reduced to WARNING
    """
    logging.basicConfig(
        level=(level or settings.log_level).upper(),
        format=LOG_FORMAT,
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True,
    )
    for noisy in ("botocore", "boto3", "urllib3", "httpx", "httpcore"):
        logging.getLogger(noisy).setLevel(logging.WARNING)
