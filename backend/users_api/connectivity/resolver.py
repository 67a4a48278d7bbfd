"""
Users API - Endpoint Resolver
==============================

What:  Turns configuration into the ordered list of connection targets to try.
Why:   Separates "which endpoints" from "how to connect to them", so the
       candidate list can be tested without touching a network.
How:   resolve() is a pure function: it reads settings and returns an
       immutable ConnectionTarget. No DNS lookups, no sockets.

Ordering rules:
    1. The configured primary URI is always index 0.
    2. development: well-known local addresses follow, then operator extras.
    3. production: no fallbacks at all. Silently landing on a loopback
       database in production would serve the wrong data.
    4. Duplicates are dropped, first occurrence wins.
"""

from dataclasses import dataclass
from typing import Iterable, Iterator, List, Tuple
from urllib.parse import urlsplit, urlunsplit

from users_api.exceptions import ConfigurationError

# Docker Desktop host alias, default docker0 bridge gateway, plain loopback
LOCAL_FALLBACK_HOSTS: Tuple[str, ...] = (
    "host.docker.internal:27017",
    "172.17.0.1:27017",
    "localhost:27017",
)


@dataclass(frozen=True)
class ConnectionTarget:
    """
    Ordered, immutable, non-empty sequence of connection strings.

    Built once at startup. The supervisor walks it front to back on every pass.
    """

    uris: Tuple[str, ...]

    def __post_init__(self):
        if not self.uris:
            raise ConfigurationError("ConnectionTarget requires at least one URI")

    @property
    def primary(self) -> str:
        return self.uris[0]

    @property
    def fallbacks(self) -> Tuple[str, ...]:
        return self.uris[1:]

    def __len__(self) -> int:
        return len(self.uris)

    def __iter__(self) -> Iterator[str]:
        return iter(self.uris)

    def __getitem__(self, index: int) -> str:
        return self.uris[index]


def local_fallback_uris(db_name: str) -> List[str]:
    """The well-known development fallbacks, pointed at `db_name`."""
    return [f"mongodb://{host}/{db_name}" for host in LOCAL_FALLBACK_HOSTS]


def _dedupe(uris: Iterable[str]) -> Tuple[str, ...]:
    seen = set()
    ordered = []
    for uri in uris:
        if uri and uri not in seen:
            seen.add(uri)
            ordered.append(uri)
    return tuple(ordered)


def resolve(config) -> ConnectionTarget:
    """
    Build the ConnectionTarget for the given settings.

    Args:
        config: any object exposing `mongo_uri`, `mongo_db_name`,
                `is_production` and `fallback_uris_list` (normally Settings).

    Raises:
        ConfigurationError: production mode without a primary URI.
    """
    primary = (config.mongo_uri or "").strip()

    if config.is_production:
        if not primary:
            raise ConfigurationError(
                "MONGO_URI must be set when ENVIRONMENT=production",
                context={"environment": "production"},
            )
        return ConnectionTarget(uris=(primary,))

    candidates = [primary]
    candidates.extend(local_fallback_uris(config.mongo_db_name))
    candidates.extend(config.fallback_uris_list)
    return ConnectionTarget(uris=_dedupe(candidates))


def redact_uri(uri: str) -> str:
    """
    Mask the password in a connection string so it can be logged.

    mongodb://app:s3cret@db:27017/users → mongodb://app:***@db:27017/users
    """
    try:
        parts = urlsplit(uri)
    except ValueError:
        return "<unparseable uri>"
    if "@" not in parts.netloc:
        return uri
    credentials, _, hosts = parts.netloc.rpartition("@")
    user = credentials.split(":", 1)[0]
    return urlunsplit(parts._replace(netloc=f"{user}:***@{hosts}"))
