from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from linkrot.errors import ConfigError

DEFAULT_TIMEOUT = 5
DEFAULT_USER_AGENT = "Mozilla/5.0 (X11; Linux x86_64; rv:102.0) Gecko/20100101 Firefox/102.0"
HTTP_METHODS = ("GET", "HEAD")

# connection pooling
POOL_CONNECTIONS = 100
POOL_MAXSIZE = 10
IDLE_POOL_TIMEOUT = 10

# in-memory dns caching
DNS_REFRESH_INTERVAL = 5 * 60


@dataclass(frozen=True)
class ProbeConfig:
    """Settings shared by every probe of a run. Built once, never mutated."""

    timeout: float = DEFAULT_TIMEOUT
    user_agent: str = DEFAULT_USER_AGENT
    method: str = "GET"
    verify_tls: bool = True
    follow_redirects: bool = True
    # None means no cap on in-flight probes
    concurrency: Optional[int] = None
    dns_cache: bool = True
    dns_refresh_interval: float = DNS_REFRESH_INTERVAL

    def __post_init__(self):
        method = str(self.method).upper()
        if method not in HTTP_METHODS:
            raise ConfigError(f"http method must be HEAD or GET, got {self.method!r}")
        # frozen dataclass: normalise through object.__setattr__
        object.__setattr__(self, "method", method)
        if self.timeout <= 0:
            raise ConfigError(f"timeout must be positive, got {self.timeout}")
        if self.concurrency is not None and self.concurrency < 1:
            raise ConfigError(f"concurrency must be at least 1, got {self.concurrency}")
        if self.dns_refresh_interval <= 0:
            raise ConfigError("dns refresh interval must be positive")

    @classmethod
    def from_args(cls, args) -> "ProbeConfig":
        return cls(
            timeout=args.timeout,
            user_agent=args.user_agent,
            method=args.http_method,
            verify_tls=not args.skip_tls,
            follow_redirects=args.follow_redirects,
            concurrency=args.concurrency,
            dns_cache=args.dns_cache,
        )
