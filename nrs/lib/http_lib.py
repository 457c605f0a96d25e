'''
Copyright 2025 Advanced Micro Devices, Inc.
All rights reserved. This notice is intended as a precaution against inadvertent publication and does not imply publication or any waiver of confidentiality.
The year included in the foregoing notice is the year of creation of the work.
All code contained here is Property of Advanced Micro Devices, Inc.
'''

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

import requests

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class HttpResult:
    """Outcome of a single bounded HTTP call."""

    status_code: Optional[int] = None
    body: str = ""
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.status_code == 200

    @property
    def timed_out(self) -> bool:
        return self.error == "timeout"


class HttpClient:
    """
    Thin wrapper over a requests session.

    Every call carries an explicit timeout and never raises for transport
    problems; those are reported through HttpResult.error instead.
    """

    def __init__(self, session: Optional[requests.Session] = None):
        self.session = session or requests.Session()

    def get(self, url: str, timeout: float) -> HttpResult:
        try:
            resp = self.session.get(url, timeout=timeout)
        except requests.exceptions.Timeout:
            return HttpResult(error="timeout")
        except requests.exceptions.RequestException as e:
            return HttpResult(error=str(e))
        return HttpResult(status_code=resp.status_code, body=resp.text)

    def post_json(self, url: str, payload: Dict[str, Any], timeout: float) -> HttpResult:
        headers = {"accept": "*/*", "Content-Type": "application/json"}
        try:
            resp = self.session.post(url, json=payload, headers=headers, timeout=timeout)
        except requests.exceptions.Timeout:
            log.debug(f"POST {url} timed out after {timeout}s")
            return HttpResult(error="timeout")
        except requests.exceptions.RequestException as e:
            log.debug(f"POST {url} failed: {e}")
            return HttpResult(error=str(e))
        return HttpResult(status_code=resp.status_code, body=resp.text)

    def close(self):
        self.session.close()
