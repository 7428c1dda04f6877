"""Offline credential for clients under playback or recording.

Returns fake tokens so BearerTokenCredentialPolicy can run without Azure
connectivity. The authorization header is excluded from comparison and
redacted from fixtures, so the token value never matters.
"""

from __future__ import annotations

import time
from typing import Any

from azure.core.credentials import AccessToken

# Token validity duration
TOKEN_VALIDITY_SECONDS = 3600


class PlaybackCredential:
    """Implements the azure-core TokenCredential protocol with fake tokens.

    Tracks calls for test assertions. Each instance keeps its own state.
    """

    def __init__(self, client_id: str | None = None) -> None:
        self._client_id = client_id
        self._get_token_calls: list[dict[str, Any]] = []

    @property
    def get_token_call_count(self) -> int:
        """Get the number of times get_token was called."""
        return len(self._get_token_calls)

    def get_token(
        self,
        *scopes: str,
        claims: str | None = None,
        tenant_id: str | None = None,
        **kwargs: Any,
    ) -> AccessToken:
        """Get a fake access token.

        Token format: playback-token-{counter}-{client_id or system-assigned}
        """
        self._get_token_calls.append({
            "scopes": scopes,
            "claims": claims,
            "tenant_id": tenant_id,
        })

        identity_part = self._client_id or "system-assigned"
        token = f"playback-token-{len(self._get_token_calls)}-{identity_part}"
        return AccessToken(token, int(time.time()) + TOKEN_VALIDITY_SECONDS)

    def close(self) -> None:
        pass

    def __enter__(self) -> PlaybackCredential:
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()
