"""Admin authentication for the management routes.

The management API is operated by the surrounding product on behalf of
merchants; it authenticates with a single shared admin bearer token
(``SBTCPAY_ADMIN_TOKEN``). Chainhook intake uses its own secret and is
checked by the receiver.
"""

from __future__ import annotations

import logging

from sbtc_pay.errors.definitions import ErrAdminRequired
from sbtc_pay.utils.crypto import bearer_matches

logger = logging.getLogger(__name__)

AUTH_HEADER = "Authorization"


def require_admin_token(authorization: str | None, admin_token: str) -> None:
    """Validate the admin bearer token.

    Raises:
        AuthError: 401 if the token is missing, wrong, or not configured.
    """
    if not bearer_matches(authorization, admin_token):
        logger.debug("Rejected admin request")
        raise ErrAdminRequired
