'''
Copyright 2025 Advanced Micro Devices, Inc.
All rights reserved. This notice is intended as a precaution against inadvertent publication and does not imply publication or any waiver of confidentiality.
The year included in the foregoing notice is the year of creation of the work.
All code contained here is Property of Advanced Micro Devices, Inc.
'''

import re
import logging

log = logging.getLogger(__name__)


def scan_error_patterns(log_text, error_patterns):
    """
    Scan captured server output for known fatal signatures.

    Parameters:
      log_text (str): Full text of the iteration log.
      error_patterns (list): Ordered list of plain substrings.

    Behavior:
      - Patterns are checked in configured order.
      - The first pattern present anywhere in the log short-circuits the scan.
      - An empty pattern list is always a clean pass.

    Returns:
      str or None: The matching pattern, or None if the log is clean.
    """
    for pattern in error_patterns:
        if pattern and pattern in log_text:
            log.error(f"FAIL: Found error pattern '{pattern}' in logs.")
            return pattern
    return None


def matches_success_pattern(content, success_pattern):
    """Case-insensitive regex search; an unset pattern always matches."""
    if not success_pattern:
        return True
    return re.search(success_pattern, content, re.I) is not None
