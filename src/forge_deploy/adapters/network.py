"""ICMP and HTTP probes run from the orchestrating machine."""

from typing import Optional

import requests

from forge_deploy.utils.errors import ErrorContext, UnreachableTarget
from forge_deploy.utils.process import run_command
from .base import HttpResponse, NetworkProbe


class SystemNetworkProbe(NetworkProbe):
    """Uses the system ping binary and requests."""

    def __init__(self, session: Optional[requests.Session] = None):
        self.session = session or requests.Session()

    def ping(self, address: str, timeout: int) -> bool:
        result = run_command(['ping', '-c', '1', '-W', str(timeout), address], timeout=timeout + 5)
        return result.ok

    def http_get(self, url: str, timeout: float) -> HttpResponse:
        try:
            response = self.session.get(url, timeout=timeout)
        except requests.RequestException as e:
            raise UnreachableTarget(
                f"No HTTP response from {url}: {e}",
                context=ErrorContext(operation='http get', target=url),
                cause=e,
            )
        return HttpResponse(status=response.status_code, body=response.text)
