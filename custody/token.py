"""Remote session-token validation."""

from __future__ import annotations

import logging

from custody.errors import CustodyError, ErrorKind
from custody.transport import VaultTransport

logger = logging.getLogger(__name__)

LOOKUP_SELF_PATH = "auth/token/lookup-self"


class TokenValidator:
    """Checks a caller's token against Vault's self-lookup endpoint.

    Nothing is cached: every protected call re-validates, so a revoked
    token stops working immediately.
    """

    def __init__(self, transport: VaultTransport) -> None:
        self._transport = transport

    async def validate(self, token: str) -> bool:
        if not token:
            raise CustodyError(ErrorKind.unauthorized, "missing session token")
        try:
            await self._transport.get(LOOKUP_SELF_PATH, token)
        except CustodyError as exc:
            status = exc.upstream_status
            if exc.kind is ErrorKind.protocol_error and status is not None and 200 <= status < 300:
                # 2xx with an unparseable body: the token was still accepted.
                return True
            if exc.kind in (ErrorKind.unauthorized, ErrorKind.forbidden):
                logger.info("token rejected by vault (HTTP %s)", exc.upstream_status)
                raise
            raise CustodyError(
                ErrorKind.internal_error,
                f"token lookup failed: {exc}",
                upstream_status=exc.upstream_status,
                context=exc.context,
            ) from exc
        return True


__all__ = ["LOOKUP_SELF_PATH", "TokenValidator"]
