"""DNS-over-HTTPS resolvability check using Qt networking."""

import json
import logging

from PySide6.QtCore import QObject, QUrl, QUrlQuery
from PySide6.QtNetwork import QNetworkAccessManager, QNetworkReply, QNetworkRequest

logger = logging.getLogger(__name__)

DEFAULT_DOH_URL = "https://cloudflare-dns.com/dns-query"
DEFAULT_TIMEOUT_MS = 5000


def parse_doh_status(body: bytes) -> bool:
    """Return True if a DoH JSON response reports success (pure function).

    A response is a success only when it decodes to an object whose
    ``Status`` field is 0 (NOERROR). Anything else, including undecodable
    bodies, is treated as unresolvable.

    Examples:
        >>> parse_doh_status(b'{"Status": 0, "Answer": []}')
        True
        >>> parse_doh_status(b'{"Status": 3}')
        False
        >>> parse_doh_status(b"not json")
        False
    """
    try:
        data = json.loads(body.decode("utf-8"))
    except (UnicodeDecodeError, ValueError):
        return False

    return isinstance(data, dict) and data.get("Status") == 0


class DohLookup:
    """Handle for one in-flight lookup. abort() suppresses the callback."""

    def __init__(self, name: str, reply: QNetworkReply):
        self.name = name
        self.reply = reply
        self.aborted = False

    def abort(self):
        if self.aborted:
            return
        self.aborted = True
        logger.debug("DoH lookup aborted: name=%s", self.name)
        self.reply.abort()


class DohResolver(QObject):
    """Resolver that asks a DoH JSON endpoint whether a name resolves.

    Timeouts, network errors and non-zero DNS status all resolve to False
    (fail closed). Lookups are never retried.
    """

    def __init__(
        self,
        url: str = DEFAULT_DOH_URL,
        timeout_ms: int = DEFAULT_TIMEOUT_MS,
        manager: QNetworkAccessManager | None = None,
        parent=None,
    ):
        super().__init__(parent)
        if timeout_ms <= 0:
            raise ValueError("timeout_ms must be positive")

        self.url = url
        self.timeout_ms = timeout_ms
        self._manager = manager if manager is not None else QNetworkAccessManager(self)

    def build_request(self, name: str) -> QNetworkRequest:
        query = QUrlQuery()
        query.addQueryItem("name", name)

        url = QUrl(self.url)
        url.setQuery(query)

        request = QNetworkRequest(url)
        request.setRawHeader(b"Accept", b"application/dns-json")
        request.setTransferTimeout(self.timeout_ms)
        return request

    def lookup(self, name: str, callback) -> DohLookup:
        """Start a lookup for name; callback(bool) runs when it finishes."""
        reply = self._manager.get(self.build_request(name))
        lookup = DohLookup(name, reply)
        reply.finished.connect(lambda: self._on_finished(lookup, callback))

        logger.debug("DoH lookup started: name=%s, timeout=%dms", name, self.timeout_ms)
        return lookup

    def _on_finished(self, lookup: DohLookup, callback):
        reply = lookup.reply
        try:
            if lookup.aborted:
                return

            if reply.error() != QNetworkReply.NetworkError.NoError:
                logger.debug(
                    "DoH lookup failed: name=%s, error=%s", lookup.name, reply.errorString()
                )
                resolvable = False
            else:
                resolvable = parse_doh_status(bytes(reply.readAll().data()))
        finally:
            reply.deleteLater()

        logger.debug("DoH lookup finished: name=%s, resolvable=%s", lookup.name, resolvable)
        callback(resolvable)
