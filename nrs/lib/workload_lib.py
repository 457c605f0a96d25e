'''
Copyright 2025 Advanced Micro Devices, Inc.
All rights reserved. This notice is intended as a precaution against inadvertent publication and does not imply publication or any waiver of confidentiality.
The year included in the foregoing notice is the year of creation of the work.
All code contained here is Property of Advanced Micro Devices, Inc.
'''

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from nrs.lib.verify_lib import matches_success_pattern

log = logging.getLogger(__name__)


@dataclass
class WorkloadResult:
    all_delivered: bool = True
    all_matched: bool = True
    sent: int = 0
    contents: List[str] = field(default_factory=list)
    failed_at: Optional[int] = None  # 1-based index of the prompt that got no response


class WorkloadDriver:
    """Sends the per-iteration prompts through a framework adapter and checks the answers."""

    def __init__(self, http, adapter):
        self.http = http
        self.adapter = adapter

    def drive(
        self,
        url: str,
        model: str,
        request_count: int,
        prompt: str,
        default_params: Dict[str, Any],
        extra_params: Dict[str, Any],
        timeout: float,
        success_pattern: Optional[str] = None,
        iter_log=None,
    ) -> WorkloadResult:
        """
        Send request_count prompts one after another.

        A missing response (timeout, connection error, empty body) ends the
        loop at once since the server is no longer reachable. A pattern
        mismatch does not: the remaining prompts are still sent so the log
        holds the complete evidence.
        """
        result = WorkloadResult()
        for p in range(1, request_count + 1):
            log.info(f"Sending prompt {p}/{request_count} ...")
            payload = self.adapter.build_payload(model, prompt, default_params, extra_params)
            response = self.http.post_json(url, payload, timeout=timeout)
            result.sent = p

            if response.error is not None or not response.body:
                log.error(f"FAIL: Prompt {p}/{request_count} - no response (timeout or connection error).")
                result.all_delivered = False
                result.failed_at = p
                break

            content = self.adapter.parse_response(response.body).text
            result.contents.append(content)
            log.info(f"Prompt {p} response: {content}")

            if iter_log is not None:
                iter_log.write(f"--- Prompt {p} response ---\n{response.body}\n\n")

            if not matches_success_pattern(content, success_pattern):
                result.all_matched = False
                log.warning(
                    f"WARNING: Prompt {p}/{request_count} answer does not match pattern '{success_pattern}'."
                )
        return result
