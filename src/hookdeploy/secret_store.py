"""Shared listener secret: generated once, reused by every registration.

The secret file doubles as the listener's systemd EnvironmentFile, so it
holds a single `SECRET_TOKEN=<hex>` line.
"""

import os
import secrets
from pathlib import Path

from dotenv import dotenv_values

from hookdeploy.errors import ProvisioningError
from hookdeploy.logging import get_logger
from hookdeploy.models import SecretToken

logger = get_logger(__name__)

SECRET_KEY = "SECRET_TOKEN"


def read_secret(path: Path) -> str | None:
    """Return the stored token, or None if the secret file does not exist.

    Raises:
        ProvisioningError: If the file exists but holds no SECRET_TOKEN.
    """
    path = Path(path)
    if not path.exists():
        return None
    value = dotenv_values(path).get(SECRET_KEY)
    if not value:
        raise ProvisioningError(f"{path} exists but does not define {SECRET_KEY}")
    return value


def get_or_create_secret(path: Path, nbytes: int = 32) -> SecretToken:
    """Return the installation's secret, generating it on first use.

    The file is created exclusively with owner-only permissions, so two
    concurrent first registrations still end up sharing one token.
    """
    path = Path(path)
    existing = read_secret(path)
    if existing is not None:
        logger.info("secret_reused", path=str(path))
        return SecretToken(value=existing, created=False)

    token = secrets.token_hex(nbytes)
    path.parent.mkdir(parents=True, exist_ok=True)
    try:
        fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_EXCL, 0o600)
    except FileExistsError:
        logger.info("secret_created_concurrently", path=str(path))
        return SecretToken(value=read_secret(path), created=False)

    with os.fdopen(fd, "w", encoding="utf-8") as f:
        f.write(f"{SECRET_KEY}={token}\n")

    logger.info("secret_generated", path=str(path), nbytes=nbytes)
    return SecretToken(value=token, created=True)
