"""
Virtual Router - routes virtual model aliases to concrete backend targets

This package resolves a logical model id to one of several provider/model
targets using configurable strategies, keeps recently failed targets in
cooldown, retries with capped backoff and tracks per-session fallback
progress across asynchronous failure reports.
"""

from virtual_router.backoff import BackoffResult, execute_with_backoff, should_fallback_status
from virtual_router.config import (
    BackoffSpec,
    FallbackTrigger,
    LoadedConfig,
    OnFailPolicy,
    Strategy,
    StrategyProfile,
    Target,
    VirtualModelConfig,
    build_virtual_catalog,
    load_config,
    load_config_from_file,
    validate_config,
)
from virtual_router.cooldown import CooldownStore
from virtual_router.duration import parse_duration
from virtual_router.exceptions import (
    ConfigError,
    DurationParseError,
    NoViableTargetError,
    TargetFailedError,
    UnknownVirtualModelError,
    VirtualRouterError,
)
from virtual_router.fallback import FallbackStep, SessionFallbackTracker
from virtual_router.metrics import MetricsAggregator
from virtual_router.policy import ResolvedPolicy, merge_policy, resolve_profile
from virtual_router.router import FailureReport, ResolvedTarget, RouteResult, VirtualRouter
from virtual_router.settings import RouterSettings
from virtual_router.strategies import RoundRobinCursors, select_targets

__version__ = "0.1.0"

__all__ = [
    "VirtualRouter",
    "RouterSettings",
    "ResolvedTarget",
    "FailureReport",
    "RouteResult",
    "Target",
    "VirtualModelConfig",
    "StrategyProfile",
    "BackoffSpec",
    "FallbackTrigger",
    "Strategy",
    "OnFailPolicy",
    "LoadedConfig",
    "load_config",
    "load_config_from_file",
    "validate_config",
    "build_virtual_catalog",
    "ResolvedPolicy",
    "resolve_profile",
    "merge_policy",
    "select_targets",
    "RoundRobinCursors",
    "CooldownStore",
    "MetricsAggregator",
    "SessionFallbackTracker",
    "FallbackStep",
    "BackoffResult",
    "execute_with_backoff",
    "should_fallback_status",
    "parse_duration",
    "VirtualRouterError",
    "DurationParseError",
    "ConfigError",
    "UnknownVirtualModelError",
    "NoViableTargetError",
    "TargetFailedError",
]
