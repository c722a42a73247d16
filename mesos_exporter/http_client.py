import logging
import ssl
from http.cookiejar import DefaultCookiePolicy
from typing import FrozenSet, Optional
from urllib.parse import urljoin, urlparse

import requests
from requests.adapters import HTTPAdapter
from requests.cookies import RequestsCookieJar
from urllib3.util.retry import Retry

from mesos_exporter.trust import Credentials

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 5.0


class FetchError(RuntimeError):
    """Transport failure, or a non-2xx answer from an upstream endpoint."""


class _TLSAdapter(HTTPAdapter):
    """HTTPAdapter verifying peers against a caller supplied SSLContext."""

    def __init__(self, ssl_context: Optional[ssl.SSLContext] = None, **kwargs):
        # init_poolmanager() runs inside HTTPAdapter.__init__
        self.ssl_context = ssl_context
        super().__init__(**kwargs)

    def init_poolmanager(self, *args, **kwargs):
        if self.ssl_context is not None:
            kwargs["ssl_context"] = self.ssl_context
        return super().init_poolmanager(*args, **kwargs)


class _RedirectPolicySession(requests.Session):
    """Session consulting the trusted redirect set on every redirect hop."""

    def __init__(self, trusted_redirects: FrozenSet[str], credentials: Optional[Credentials]):
        super().__init__()
        self.trusted_redirects = trusted_redirects
        self.credentials = credentials
        # no proxies or .netrc credentials from the environment
        self.trust_env = False
        # scrapes share no state, upstream Set-Cookie is never stored
        self.cookies = RequestsCookieJar(policy=DefaultCookiePolicy(allowed_domains=[]))

    def get_redirect_target(self, resp):
        location = super().get_redirect_target(resp)
        if location is None:
            return None
        host = urlparse(urljoin(resp.url, location)).hostname or ""
        if host in self.trusted_redirects:
            return location
        # stop here, the caller gets the redirect response itself
        logger.warning("Redirect to '%s' not trusted", host)
        return None

    def rebuild_auth(self, prepared_request, response):
        prepared_request.headers.pop("Authorization", None)
        if self.credentials is not None:
            prepared_request.prepare_auth(self.credentials.as_auth())


def _requests_session(
    cert_pool: Optional[ssl.SSLContext],
    trusted_redirects: FrozenSet[str],
    credentials: Optional[Credentials],
) -> requests.Session:
    s = _RedirectPolicySession(trusted_redirects, credentials)
    # one attempt per fetch, rescheduling is the scraper's business
    retries = Retry(total=0, raise_on_status=False)
    s.mount("https://", _TLSAdapter(ssl_context=cert_pool, max_retries=retries))
    s.mount("http://", HTTPAdapter(max_retries=retries))
    if credentials is not None:
        s.auth = credentials.as_auth()
    return s


class SecureFetcher:
    """HTTP GET client bound to one trust configuration.

    ``cert_pool`` of None verifies against the system roots. Redirects are
    followed only towards hosts in ``trusted_redirects``; credentials, when
    configured, are re-attached to every followed hop.
    """

    def __init__(
        self,
        timeout: float = DEFAULT_TIMEOUT,
        cert_pool: Optional[ssl.SSLContext] = None,
        trusted_redirects: FrozenSet[str] = frozenset(),
        credentials: Optional[Credentials] = None,
    ):
        self.timeout = timeout
        self.http = _requests_session(cert_pool, trusted_redirects, credentials)

    def fetch(self, url: str) -> requests.Response:
        logger.debug("GET %s", url)
        try:
            return self.http.get(url, timeout=self.timeout)
        except requests.RequestException as e:
            raise FetchError(f"GET {url} failed: {e}") from e

    def close(self) -> None:
        self.http.close()
