from __future__ import annotations

import logging
import secrets
from typing import Annotated

from fastapi import Depends, Header, HTTPException, status

from research_engine.config import Settings, get_settings
from research_engine.research.errors import UnauthorizedError

logger = logging.getLogger(__name__)


def verify_callback_secret(
  settings: Annotated[Settings, Depends(get_settings)],
  x_webhook_secret: Annotated[str | None, Header()] = None,
  authorization: Annotated[str | None, Header()] = None,
) -> None:
  """Authenticate inbound workflow callbacks with the shared secret."""
  # Deny by default: without a configured secret no callback is accepted.
  if not settings.callback_secret:
    raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Callback authentication is not configured.")

  # The dedicated header is checked first; a bearer token carrying the same secret is also accepted.
  header_valid = secrets.compare_digest((x_webhook_secret or "").encode(), settings.callback_secret.encode())
  bearer_valid = secrets.compare_digest((authorization or "").encode(), f"Bearer {settings.callback_secret}".encode())
  if not header_valid and not bearer_valid:
    logger.warning("Rejected research callback with missing or invalid secret")
    raise UnauthorizedError("Invalid callback secret.")
