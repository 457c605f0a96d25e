'''
Copyright 2025 Advanced Micro Devices, Inc.
All rights reserved. This notice is intended as a precaution against inadvertent publication and does not imply publication or any waiver of confidentiality.
The year included in the foregoing notice is the year of creation of the work.
All code contained here is Property of Advanced Micro Devices, Inc.
'''


class StressTestError(Exception):
    """Base class for all stress test errors."""


class FatalError(StressTestError):
    """Error that aborts the whole run before the first iteration."""


class ConfigError(FatalError):
    """Configuration file is missing, unreadable or invalid."""


class PreflightError(FatalError):
    """A required external dependency (docker daemon, HF token) is unavailable."""


class AdapterNotFound(FatalError):
    """No framework adapter is registered under the requested name."""


class AdapterIncomplete(FatalError):
    """A framework adapter does not implement every required capability."""


class LaunchFailure(StressTestError):
    """The compute environment could not be created."""
