"""
Identity enrichment: display name and email for learner ids from the user directory.

Enrichment is best-effort. Callers fall back to the ``users`` table and then to
placeholder names when a learner is missing from the result.
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Sequence

import httpx

from progress_api.core.errors import DegradedFetchError
from progress_api.core.logging import DOMAIN_IDENTITY, get_domain_logger
from progress_api.core.settings import settings
from progress_api.store.records import LearnerAccount, LearnerIdentity

IDENTITY_CATEGORY = "identity"
logger = get_domain_logger(__name__, DOMAIN_IDENTITY)


class IdentityProvider(ABC):
    @abstractmethod
    async def lookup(self, learner_ids: Sequence[str]) -> dict[str, LearnerIdentity]:
        """Return identities for the ids the provider knows; unknown ids are omitted."""
        raise NotImplementedError


class PlaceholderIdentityProvider(IdentityProvider):
    """Used when no directory credentials are configured."""

    async def lookup(self, learner_ids: Sequence[str]) -> dict[str, LearnerIdentity]:
        return {}


def _primary_email(user: dict) -> str | None:
    addresses = user.get("email_addresses") or []
    primary_id = user.get("primary_email_address_id")
    for address in addresses:
        if primary_id and address.get("id") == primary_id:
            return address.get("email_address")
    if addresses:
        return addresses[0].get("email_address")
    return None


def identity_from_directory_user(user: dict) -> LearnerIdentity | None:
    learner_id = user.get("id")
    if not learner_id:
        return None
    first_name = user.get("first_name")
    last_name = user.get("last_name")
    full_name = f"{first_name or ''} {last_name or ''}".strip()
    return LearnerIdentity(
        learner_id=learner_id,
        name=full_name,
        email=_primary_email(user),
        first_name=first_name,
        last_name=last_name,
    )


class HttpIdentityProvider(IdentityProvider):
    def __init__(
        self,
        base_url: str | None = None,
        api_key: str | None = None,
        timeout_seconds: float | None = None,
        batch_size: int | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = (base_url or settings.identity_api_url).rstrip("/")
        self.api_key = api_key if api_key is not None else settings.identity_api_key
        self.timeout_seconds = timeout_seconds or settings.identity_timeout_seconds
        self.batch_size = max(1, batch_size or settings.identity_batch_size)
        self.transport = transport

    async def lookup(self, learner_ids: Sequence[str]) -> dict[str, LearnerIdentity]:
        ids = list(dict.fromkeys(learner_ids))
        if not ids:
            return {}
        found: dict[str, LearnerIdentity] = {}
        try:
            async with httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout_seconds,
                headers={"Authorization": f"Bearer {self.api_key}"},
                transport=self.transport,
            ) as client:
                for start in range(0, len(ids), self.batch_size):
                    batch = ids[start:start + self.batch_size]
                    response = await client.get(
                        "/users",
                        params=[("user_id", learner_id) for learner_id in batch] + [("limit", str(len(batch)))],
                    )
                    response.raise_for_status()
                    for user in response.json():
                        identity = identity_from_directory_user(user)
                        if identity is not None:
                            found[identity.learner_id] = identity
        except (httpx.HTTPError, ValueError, TypeError, AttributeError) as exc:
            raise DegradedFetchError(IDENTITY_CATEGORY, f"Identity lookup failed: {exc.__class__.__name__}") from exc
        missing = len(ids) - len(found)
        if missing:
            logger.info("Identity directory returned no entry for %d of %d learners", missing, len(ids))
        return found


_placeholder_warned = False


def get_identity_provider() -> IdentityProvider:
    global _placeholder_warned
    if settings.identity_api_key:
        return HttpIdentityProvider()
    if not _placeholder_warned:
        logger.warning("Identity API key not configured, using placeholder learner names")
        _placeholder_warned = True
    return PlaceholderIdentityProvider()


def resolve_identity(
    learner_id: str,
    enriched: LearnerIdentity | None,
    account: LearnerAccount | None,
) -> LearnerIdentity:
    """Merge directory data with the local account row; placeholder name when both are empty."""
    placeholder = LearnerIdentity.placeholder(learner_id)
    email = (enriched.email if enriched else None) or (account.email if account else None)
    first_name = (enriched.first_name if enriched else None) or (account.first_name if account else None)
    last_name = (enriched.last_name if enriched else None) or (account.last_name if account else None)
    name = (
        (enriched.name if enriched else None)
        or (account.name if account else None)
        or (email.split("@")[0] if email else None)
        or placeholder.name
    )
    return LearnerIdentity(
        learner_id=learner_id,
        name=name,
        email=email,
        first_name=first_name,
        last_name=last_name,
    )
