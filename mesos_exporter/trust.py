"""Trust configuration shared by every fetcher: CA pool, redirect allow-list, credentials."""
import logging
import re
import ssl
from dataclasses import dataclass
from typing import FrozenSet, Iterable, Optional, Tuple

from requests.auth import HTTPBasicAuth

logger = logging.getLogger(__name__)

PEM_CERTIFICATE = re.compile(r"-----BEGIN CERTIFICATE-----.+?-----END CERTIFICATE-----", re.DOTALL)


class TrustStoreError(RuntimeError):
    """A trust anchor file could not be read or holds no certificate."""


@dataclass(frozen=True)
class Credentials:
    username: str
    password: str

    @classmethod
    def from_pair(cls, username: Optional[str], password: Optional[str]) -> Optional["Credentials"]:
        # half-configured credentials are treated as none at all
        if not username or not password:
            return None
        return cls(username, password)

    def as_auth(self) -> HTTPBasicAuth:
        return HTTPBasicAuth(self.username, self.password)

    def __repr__(self) -> str:
        return f"Credentials(username={self.username!r}, password='***')"


def build_cert_pool(pem_files: Iterable[str]) -> Optional[ssl.SSLContext]:
    """Build a client TLS context trusting only the given PEM files.

    Returns None for an empty input, meaning the system trust store is used.
    Raises TrustStoreError when a file is unreadable or contains no
    certificate; callers treat that as a startup failure.
    """
    paths: Tuple[str, ...] = tuple(p for p in (s.strip() for s in pem_files) if p)
    if not paths:
        return None

    # empty store, system roots are not loaded
    context = ssl.SSLContext(ssl.PROTOCOL_TLS_CLIENT)
    context.check_hostname = True
    context.verify_mode = ssl.CERT_REQUIRED

    for path in paths:
        try:
            with open(path, "r", encoding="utf-8", errors="replace") as f:
                content = f.read()
        except OSError as e:
            raise TrustStoreError(f"Error reading .pem file {path}: {e}") from e
        # bundles may carry comment headers between blocks
        blocks = PEM_CERTIFICATE.findall(content)
        if not blocks:
            raise TrustStoreError(f"Error parsing .pem file {path}: no certificate found")
        try:
            context.load_verify_locations(cadata="\n".join(blocks) + "\n")
        except ssl.SSLError as e:
            raise TrustStoreError(f"Error parsing .pem file {path}: {e}") from e
        logger.debug("Loaded trust anchors from %s", path)

    return context


def build_trusted_redirects(hostnames: Iterable[str]) -> FrozenSet[str]:
    # hostnames compare case-insensitively, ports are not part of the identity
    return frozenset(h.strip().lower() for h in hostnames if h and h.strip())
