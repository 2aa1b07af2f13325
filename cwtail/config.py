import os
import logging

import boto3
from botocore.config import Config

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO"),
    format="%(asctime)s | %(levelname)s | %(message)s",
)
log = logging.getLogger("cwtail")

AWS_REGION = os.getenv("AWS_REGION") or boto3.session.Session().region_name or "us-east-1"

POLL_INTERVAL = float(os.getenv("CWTAIL_POLL_INTERVAL", "0.4"))
REFRESH_INTERVAL = float(os.getenv("CWTAIL_REFRESH_INTERVAL", "5"))
CACHE_TTL = float(os.getenv("CWTAIL_CACHE_TTL", "60"))
PURGE_INTERVAL = float(os.getenv("CWTAIL_PURGE_INTERVAL", "30"))
DISCOVERY_TIMEOUT = float(os.getenv("CWTAIL_DISCOVERY_TIMEOUT", "5"))
BUFFER_SIZE = int(os.getenv("CWTAIL_BUFFER_SIZE", "1000"))

# FilterLogEvents rejects more than 100 stream names.
MAX_STREAMS = 100
GROUP_RETRY_DELAY = 0.15
THROTTLE_RETRY_DELAY = 0.25


def logs_client(region: str = AWS_REGION, timeout: int = 30):
    # Throttling is retried by fetch_pages only, once, so botocore must not retry.
    cfg = Config(
        connect_timeout=10,
        read_timeout=timeout,
        retries={"total_max_attempts": 1, "mode": "standard"},
    )
    return boto3.client("logs", region_name=region, config=cfg)
