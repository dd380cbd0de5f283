"""Requester identity and request-origin metadata.

A request may carry two identities: a durable anonymous id assigned through a
cookie, and an identity asserted by an upstream authenticator in a header.
The authenticated identity always wins; a record is attributed to exactly one.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Optional
from app.config import settings
from app.models.schemas import IdentityKind
from app.utils.helpers import clip, first_forwarded_address


@dataclass(frozen=True)
class Identity:
    kind: IdentityKind
    value: str

    @classmethod
    def anonymous(cls, value: str) -> "Identity":
        return cls(IdentityKind.ANONYMOUS, value)

    @classmethod
    def authenticated(cls, value: str) -> "Identity":
        return cls(IdentityKind.AUTHENTICATED, value)


@dataclass(frozen=True)
class RequestOrigin:
    """Advisory metadata; never used for correctness."""
    user_agent: Optional[str] = None
    source_address: Optional[str] = None


def resolve_identity(
    authenticated: Optional[str],
    anonymous: Optional[str],
) -> Optional[Identity]:
    """Pick the identity to attribute a request to.

    Values are stripped and capped at ``IDENTITY_MAX_LENGTH``; blank values
    count as absent.  Returns ``None`` when neither is present.
    """
    auth_value = clip(authenticated, settings.IDENTITY_MAX_LENGTH)
    if auth_value:
        return Identity.authenticated(auth_value)
    anon_value = clip(anonymous, settings.IDENTITY_MAX_LENGTH)
    if anon_value:
        return Identity.anonymous(anon_value)
    return None


def build_origin(
    user_agent: Optional[str],
    real_ip: Optional[str] = None,
    forwarded_for: Optional[str] = None,
    peer_host: Optional[str] = None,
) -> RequestOrigin:
    """Source address precedence: X-Real-IP, first X-Forwarded-For hop, peer."""
    address = real_ip or (first_forwarded_address(forwarded_for) if forwarded_for else None) or peer_host
    return RequestOrigin(
        user_agent=clip(user_agent, settings.USER_AGENT_MAX_LENGTH),
        source_address=clip(address, settings.SOURCE_ADDRESS_MAX_LENGTH),
    )
