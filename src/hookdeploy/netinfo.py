"""Public address lookup for the example request printed after provisioning."""

import requests

from hookdeploy.logging import get_logger

logger = get_logger(__name__)


def lookup_public_ip(url: str, timeout: float = 5.0) -> str | None:
    """Return this host's public IP as reported by `url`, or None if unreachable."""
    try:
        resp = requests.get(url, timeout=timeout)
    except requests.RequestException as e:
        logger.warning("public_ip_lookup_failed", url=url, error=str(e))
        return None
    if resp.status_code != 200:
        logger.warning("public_ip_lookup_failed", url=url, status=resp.status_code)
        return None
    return resp.text.strip() or None
