"""
Thin WebDAV client for a Nextcloud files endpoint.

Every request carries Basic auth. Each worker thread gets its own
requests.Session; all sessions share the same credentials and TLS settings.
"""
import logging
import threading
from pathlib import Path
from typing import BinaryIO, Callable, Optional
from urllib.parse import quote

import requests
import urllib3


class WebDAVClient:
    def __init__(self,
                 base_url: str,
                 username: str,
                 password: str,
                 verify_tls: bool = True,
                 timeout: Optional[float] = None,
                 session_factory: Callable[[], requests.Session] = requests.Session):
        """
        Args:
            base_url: WebDAV root, e.g. https://cloud/remote.php/dav/files/<user>/Photos
            verify_tls: False accepts self-signed or otherwise unverified
                certificates. This trades transport authenticity for working
                against private deployments and must be chosen explicitly.
            timeout: Per-request timeout in seconds; None waits indefinitely.
        """
        self.base_url = base_url.rstrip('/')
        self.auth = (username, password)
        self.verify_tls = verify_tls
        self.timeout = timeout
        self._session_factory = session_factory
        self._local = threading.local()

        if not verify_tls:
            logging.warning(f"TLS certificate verification is DISABLED for {self.base_url}")
            urllib3.disable_warnings(urllib3.exceptions.InsecureRequestWarning)

    @property
    def session(self) -> requests.Session:
        session = getattr(self._local, "session", None)
        if session is None:
            session = self._session_factory()
            session.auth = self.auth
            session.verify = self.verify_tls
            self._local.session = session
        return session

    def collection_url(self, segment: str) -> str:
        return f"{self.base_url}/{quote(segment.strip('/'))}"

    def file_url(self, bucket: str, filename: str) -> str:
        return f"{self.base_url}/{quote(bucket.strip('/'))}/{quote(filename)}"

    def mkcol(self, segment: str) -> requests.Response:
        """Issues MKCOL for one collection path relative to base_url."""
        return self.session.request("MKCOL", self.collection_url(segment), timeout=self.timeout)

    def put(self, bucket: str, path: Path, body: BinaryIO) -> requests.Response:
        """Uploads body as {base_url}/{bucket}/{path.name}, overwriting any existing file."""
        return self.session.request("PUT", self.file_url(bucket, path.name), data=body, timeout=self.timeout)
