from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import Optional

import requests
import urllib3
from requests.adapters import HTTPAdapter
from urllib3.exceptions import InsecureRequestWarning

from linkrot.config import IDLE_POOL_TIMEOUT, POOL_CONNECTIONS, POOL_MAXSIZE, ProbeConfig
from linkrot.dnscache import DnsCache, cached_pool_classes

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProbeResult:
    """Outcome of one probe: a status code, or a transport error."""

    link: str
    status: Optional[int] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status is not None

    @property
    def label(self) -> str:
        return str(self.status) if self.ok else "err"


class Ticker:
    """Run ``fn`` every ``interval`` seconds on a background thread until stopped."""

    def __init__(self, interval: float, fn, name: str):
        self.interval = interval
        self.fn = fn
        self.name = name
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def start(self):
        if self._thread is not None:
            return
        self._thread = threading.Thread(target=self._run, name=self.name, daemon=True)
        self._thread.start()

    def stop(self):
        self._stop.set()
        if self._thread is not None:
            self._thread.join()
            self._thread = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def _run(self):
        while not self._stop.wait(self.interval):
            try:
                self.fn()
            except Exception:
                logger.exception("%s: periodic task failed", self.name)


class PooledAdapter(HTTPAdapter):
    """HTTPAdapter with hard per-host connection caps and idle eviction.

    ``pool_block`` turns ``pool_maxsize`` into a ceiling: a probe waits for a
    free connection to its host instead of opening an extra one.
    """

    def __init__(self, dns_cache: Optional[DnsCache] = None, **kwargs):
        # init_poolmanager runs inside HTTPAdapter.__init__ and needs these
        self.dns_cache = dns_cache
        self._lock = threading.Lock()
        self._in_flight = 0
        self._last_used = time.monotonic()
        kwargs.setdefault("pool_connections", POOL_CONNECTIONS)
        kwargs.setdefault("pool_maxsize", POOL_MAXSIZE)
        kwargs.setdefault("pool_block", True)
        super().__init__(**kwargs)

    def init_poolmanager(self, connections, maxsize, block=False, **pool_kwargs):
        super().init_poolmanager(connections, maxsize, block=block, **pool_kwargs)
        if self.dns_cache is not None:
            self.poolmanager.pool_classes_by_scheme = cached_pool_classes(self.dns_cache)

    def send(self, request, **kwargs):
        with self._lock:
            self._in_flight += 1
        try:
            return super().send(request, **kwargs)
        finally:
            with self._lock:
                self._in_flight -= 1
                self._last_used = time.monotonic()

    def evict_idle(self, idle_timeout: float = IDLE_POOL_TIMEOUT, now: Optional[float] = None) -> bool:
        """Close pooled connections if nothing was sent for ``idle_timeout`` seconds."""
        now = time.monotonic() if now is None else now
        with self._lock:
            if self._in_flight or now - self._last_used < idle_timeout:
                return False
            if not len(self.poolmanager.pools):
                return False
            self.poolmanager.clear()
        logger.debug("closed idle connection pools")
        return True


class ProbeClient:
    """Issues exactly one request per link over a single shared session.

    Call :meth:`start` to run the background maintenance (idle pool eviction
    and dns cache refresh) and :meth:`close` to stop it; the client is also a
    context manager doing both.
    """

    def __init__(
        self,
        config: ProbeConfig,
        session: Optional[requests.Session] = None,
        dns_cache: Optional[DnsCache] = None,
    ):
        self.config = config
        self.dns_cache = None
        if config.dns_cache:
            self.dns_cache = dns_cache if dns_cache is not None else DnsCache()
        self.adapter = PooledAdapter(dns_cache=self.dns_cache)

        self.session = session if session is not None else requests.Session()
        self.session.mount("http://", self.adapter)
        self.session.mount("https://", self.adapter)
        self.session.headers.update({"User-Agent": config.user_agent, "Accept": "*/*"})

        if not config.verify_tls:
            urllib3.disable_warnings(InsecureRequestWarning)
            logger.warning("TLS certificate verification is disabled")

        self._tickers = [Ticker(IDLE_POOL_TIMEOUT, self.adapter.evict_idle, "linkrot-pool-janitor")]
        if self.dns_cache is not None:
            self._tickers.append(
                Ticker(config.dns_refresh_interval, self.dns_cache.refresh, "linkrot-dns-refresh")
            )

    def start(self) -> "ProbeClient":
        for ticker in self._tickers:
            ticker.start()
        return self

    def close(self):
        for ticker in self._tickers:
            ticker.stop()
        self.session.close()

    def __enter__(self):
        return self.start()

    def __exit__(self, *exc):
        self.close()

    def probe(self, link: str) -> ProbeResult:
        try:
            response = self.session.request(
                self.config.method,
                link,
                timeout=(self.config.timeout, self.config.timeout),
                allow_redirects=self.config.follow_redirects,
                verify=self.config.verify_tls,
                # only the status is needed; never download the body
                stream=True,
            )
        except (requests.RequestException, ValueError) as e:
            # urllib3 reports bad host labels as LocationParseError, a ValueError
            logger.debug("probe failed for %s: %s", link, e)
            return ProbeResult(link, error=f"{type(e).__name__}: {e}")
        with response:
            return ProbeResult(link, status=response.status_code)
