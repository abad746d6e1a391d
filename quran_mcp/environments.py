"""
Quran Foundation API environments and their endpoints.

The Quran Foundation runs two deployments of its API:
- Production: the live API (default)
- Pre-production: a prelive copy for testing and development

Each environment has its own pair of origins: one for content requests and one
for the OAuth2 token endpoint. Access tokens are environment-specific, so a
token issued by the pre-production auth server is rejected by the production
content API and vice versa.

The mapping is fixed here, not configurable at runtime. Only the environment
*selector* comes from configuration (QURAN_ENV).
"""

from dataclasses import dataclass
from enum import Enum


class QuranEnvironment(str, Enum):
    """Deployment environment of the Quran Foundation API."""

    PRODUCTION = "production"
    PRE_PRODUCTION = "pre-production"


@dataclass(frozen=True)
class EndpointPair:
    """
    The two origins used by one environment.

    Attributes:
        content_base_url: Origin of the content API (verses, resources, ...)
        auth_base_url: Origin of the OAuth2 server that issues access tokens
    """

    content_base_url: str
    auth_base_url: str


ENVIRONMENT_ENDPOINTS: dict[QuranEnvironment, EndpointPair] = {
    QuranEnvironment.PRODUCTION: EndpointPair(
        content_base_url="https://apis.quran.foundation",
        auth_base_url="https://oauth2.quran.foundation",
    ),
    QuranEnvironment.PRE_PRODUCTION: EndpointPair(
        content_base_url="https://apis-prelive.quran.foundation",
        auth_base_url="https://prelive-oauth2.quran.foundation",
    ),
}


def parse_environment(value: str | None) -> QuranEnvironment:
    """
    Parse an environment selector string such as the QURAN_ENV variable.

    Matching is case-insensitive. Anything that isn't "pre-production"
    (including an unset variable) selects production.
    """
    if value and value.strip().lower() == QuranEnvironment.PRE_PRODUCTION.value:
        return QuranEnvironment.PRE_PRODUCTION
    return QuranEnvironment.PRODUCTION


def resolve_endpoints(environment: QuranEnvironment | str | None) -> EndpointPair:
    """
    Map an environment to its endpoint pair.

    Unrecognized or missing environments resolve to production. This never
    raises: the set of environments is closed and production is the policy
    default.
    """
    if isinstance(environment, QuranEnvironment):
        return ENVIRONMENT_ENDPOINTS[environment]
    return ENVIRONMENT_ENDPOINTS[parse_environment(environment)]
