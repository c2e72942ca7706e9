"""
Feature flags gating parts of the HTTP surface.

Flags are looked up per caller (``X-SPELLAPI-USERID`` header) so that the
flag service can target users. Two implementations are provided:

* ``LaunchDarklyFeatureFlags`` evaluates flags with the LaunchDarkly
  server SDK. It is used whenever an SDK key is configured.
* ``SettingsFeatureFlags``: every flag is on unless listed in
  ``Settings.disabled_flags``, whoever the caller is.
"""

import logging
from typing import Any, Iterable, Optional, Protocol

import ldclient
from ldclient.client import LDClient
from ldclient.config import Config

logger = logging.getLogger(__name__)

USER_HEADER = "X-SPELLAPI-USERID"

MULTIPOST_SPELL = "multipost-spell"
DELETE_SPELL = "delete-spell"
GET_SPELL_METADATA = "get-spell-metadata"
GET_SPELL_METADATA_NAMES = "get-spell-metadata-names"

# Context key for callers that did not send the user header.
ANONYMOUS_KEY = "anonymous"


class FeatureFlags(Protocol):
    def is_enabled(self, flag: str, user_key: Optional[str] = None) -> bool:
        ...

    def close(self) -> None:
        ...


class SettingsFeatureFlags:
    def __init__(self, disabled: Iterable[str] = ()):
        self.disabled = frozenset(disabled)

    def is_enabled(self, flag: str, user_key: Optional[str] = None) -> bool:
        enabled = flag not in self.disabled
        logger.debug("flag %s for user %r: %s", flag, user_key, enabled)
        return enabled

    def close(self) -> None:
        return None


class LaunchDarklyFeatureFlags:
    """Boolean flags served by LaunchDarkly.

    A flag that cannot be evaluated (unknown flag, client not initialized,
    non-boolean variation) is off.
    """

    def __init__(self, client: Any):
        self.client = client

    @classmethod
    def connect(cls, sdk_key: str, timeout_s: float = 5) -> "LaunchDarklyFeatureFlags":
        """Start an SDK client, waiting up to ``timeout_s`` for flag data."""
        client = LDClient(config=Config(sdk_key), start_wait=timeout_s)
        if not client.is_initialized():
            logger.warning(
                "LaunchDarkly client not initialized after %ss; flags default to off",
                timeout_s,
            )
        return cls(client)

    @staticmethod
    def context_for(user_key: Optional[str]) -> ldclient.Context:
        if not user_key:
            return ldclient.Context.builder(ANONYMOUS_KEY).anonymous(True).build()
        return ldclient.Context.builder(user_key).build()

    def is_enabled(self, flag: str, user_key: Optional[str] = None) -> bool:
        detail = self.client.variation_detail(flag, self.context_for(user_key), False)
        reason = detail.reason or {}
        if reason.get("kind") == "ERROR":
            logger.warning("flag %s could not be evaluated: %s", flag, reason.get("errorKind"))
        enabled = detail.value is True
        logger.debug("flag %s for user %r: %s", flag, user_key, enabled)
        return enabled

    def close(self) -> None:
        self.client.close()
