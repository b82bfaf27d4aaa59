"""
Exceptions raised by the virtual model router
"""

from typing import Optional


class VirtualRouterError(Exception):
    """Base class for all router errors"""


class DurationParseError(VirtualRouterError, ValueError):
    """Raised when a duration string such as "5m" cannot be parsed"""

    def __init__(self, value: str):
        self.value = value
        super().__init__(f'Invalid duration: "{value}"')


class ConfigError(VirtualRouterError):
    """Raised when the router document cannot be read or decoded"""


class UnknownVirtualModelError(VirtualRouterError, KeyError):
    """Raised when routing a virtual model id that is not configured"""

    def __init__(self, model_id: str):
        self.model_id = model_id
        super().__init__(f"Unknown virtual model: {model_id}")

    def __str__(self) -> str:
        return self.args[0]


class NoViableTargetError(VirtualRouterError):
    """
    Every target of a virtual model is cooled down or has been tried without success
    """

    def __init__(
        self,
        model_id: str,
        last_status: Optional[int] = None,
        last_error: Optional[BaseException] = None
    ):
        self.model_id = model_id
        self.last_status = last_status
        self.last_error = last_error
        super().__init__(f"All targets exhausted for {model_id}")


class TargetFailedError(VirtualRouterError):
    """A target exhausted its retries and the policy says to throw instead of continuing"""

    def __init__(
        self,
        model_id: str,
        target_key: str,
        last_status: Optional[int] = None,
        last_error: Optional[BaseException] = None
    ):
        self.model_id = model_id
        self.target_key = target_key
        self.last_status = last_status
        self.last_error = last_error
        detail = f"status {last_status}" if last_status is not None else repr(last_error)
        super().__init__(f"Target {target_key} failed for {model_id} ({detail})")
