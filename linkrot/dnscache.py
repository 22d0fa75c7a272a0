"""In-memory DNS cache for the probe connection pool.

Links pointing at the same host would otherwise pay one resolver round-trip
per new connection. :class:`DnsCache` remembers ``getaddrinfo`` answers and
:func:`cached_pool_classes` builds urllib3 pool classes whose connections
resolve through it. TLS hostname checks are unaffected: only the address the
socket connects to changes, the connection keeps its original host.
"""

from __future__ import annotations

import logging
import socket
import threading
from typing import Dict, List, Set

from urllib3.connection import HTTPConnection, HTTPSConnection
from urllib3.connectionpool import HTTPConnectionPool, HTTPSConnectionPool
from urllib3.exceptions import ConnectTimeoutError, LocationParseError, NewConnectionError
from urllib3.util import connection

logger = logging.getLogger(__name__)


class DnsCache:
    def __init__(self, resolve=None):
        self._resolve = resolve or _getaddrinfo
        self._lock = threading.Lock()
        self._hosts: Dict[str, List[str]] = {}
        self._used: Set[str] = set()

    def lookup(self, host: str) -> List[str]:
        with self._lock:
            addresses = self._hosts.get(host)
            if addresses is not None:
                self._used.add(host)
                return addresses
        # resolve outside the lock so one slow host does not stall the others
        addresses = self._resolve(host)
        with self._lock:
            self._hosts[host] = addresses
            self._used.add(host)
        return addresses

    def refresh(self, clear_unused: bool = True, persist_on_failure: bool = True):
        """Re-resolve every cached host.

        Hosts not looked up since the previous refresh are dropped when
        ``clear_unused`` is set. A host that fails to resolve keeps its old
        addresses when ``persist_on_failure`` is set, otherwise it is dropped.
        """
        with self._lock:
            hosts = list(self._hosts)
            used, self._used = self._used, set()
        for host in hosts:
            if clear_unused and host not in used:
                with self._lock:
                    self._hosts.pop(host, None)
                logger.debug("dns cache: dropped unused host %s", host)
                continue
            try:
                addresses = self._resolve(host)
            except OSError as e:
                logger.debug("dns cache: refresh of %s failed: %s", host, e)
                if not persist_on_failure:
                    with self._lock:
                        self._hosts.pop(host, None)
                continue
            with self._lock:
                self._hosts[host] = addresses

    def __contains__(self, host):
        with self._lock:
            return host in self._hosts

    def __len__(self):
        with self._lock:
            return len(self._hosts)


def _getaddrinfo(host: str) -> List[str]:
    addresses = []
    for *_, sockaddr in socket.getaddrinfo(host, None, proto=socket.IPPROTO_TCP):
        ip = sockaddr[0]
        if ip not in addresses:
            addresses.append(ip)
    return addresses


class _CachedResolveMixin:
    dns_cache: DnsCache

    def _new_conn(self):
        # same contract as urllib3's own _new_conn, with the lookup replaced
        host = self._dns_host
        try:
            addresses = self.dns_cache.lookup(host)
        except UnicodeError:
            # idna rejects empty or overlong labels
            raise LocationParseError(f"'{host}', label empty or too long") from None
        except OSError as e:
            raise NewConnectionError(self, f"Failed to resolve {host!r}: {e}") from e
        if not addresses:
            raise NewConnectionError(self, f"Failed to resolve {host!r}: no addresses")

        last_error = None
        for ip in addresses:
            try:
                return connection.create_connection(
                    (ip, self.port),
                    self.timeout,
                    source_address=self.source_address,
                    socket_options=self.socket_options,
                )
            except OSError as e:
                last_error = e

        if isinstance(last_error, socket.timeout):
            raise ConnectTimeoutError(
                self, f"Connection to {self.host} timed out. (connect timeout={self.timeout})"
            ) from last_error
        raise NewConnectionError(
            self, f"Failed to establish a new connection: {last_error}"
        ) from last_error


def cached_pool_classes(dns_cache: DnsCache):
    """Return a ``pool_classes_by_scheme`` mapping bound to ``dns_cache``."""

    class CachedHTTPConnection(_CachedResolveMixin, HTTPConnection):
        pass

    class CachedHTTPSConnection(_CachedResolveMixin, HTTPSConnection):
        pass

    CachedHTTPConnection.dns_cache = dns_cache
    CachedHTTPSConnection.dns_cache = dns_cache

    class CachedHTTPConnectionPool(HTTPConnectionPool):
        ConnectionCls = CachedHTTPConnection

    class CachedHTTPSConnectionPool(HTTPSConnectionPool):
        ConnectionCls = CachedHTTPSConnection

    return {"http": CachedHTTPConnectionPool, "https": CachedHTTPSConnectionPool}
