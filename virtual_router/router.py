"""
Virtual Model Router

This module provides the router instance that owns all routing state for a
process: round-robin cursors, target cooldowns, per-session fallback cursors
and per-target metrics. A virtual model id is resolved to an ordered list of
concrete targets; failures, reported inline or asynchronously, put targets in
cooldown and move sessions on to the next viable target.
"""

import asyncio
import logging
import random
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, List, Optional, Union

from virtual_router.backoff import Sleep, execute_with_backoff
from virtual_router.config import (
    DEFAULT_PREFIX,
    LoadedConfig,
    OnFailPolicy,
    Target,
    TriggerKind,
    VirtualModelConfig,
    load_config_from_file,
    validate_config,
)
from virtual_router.cooldown import CooldownStore, wall_clock_ms
from virtual_router.events import RoutingEventLog
from virtual_router.exceptions import NoViableTargetError, TargetFailedError, UnknownVirtualModelError
from virtual_router.fallback import FallbackStep, SessionFallbackTracker
from virtual_router.metrics import MetricsAggregator
from virtual_router.policy import ResolvedPolicy, merge_policy, resolve_profile
from virtual_router.settings import RouterSettings
from virtual_router.strategies import RoundRobinCursors, select_targets

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

# Auth failures fall through to the next target even without a status code
AUTH_ERROR_NAMES = {"ProviderAuthError"}


@dataclass(frozen=True)
class ResolvedTarget:
    """A concrete target chosen for a virtual model"""
    provider_id: str
    model_id: str
    index: int
    all_targets: List[Target] = field(default_factory=list)

    @property
    def key(self) -> str:
        return f"{self.provider_id}/{self.model_id}"


@dataclass(frozen=True)
class FailureReport:
    """Out-of-band failure notification for a session's current target"""
    status_code: Optional[int] = None
    error_name: Optional[str] = None
    message: Optional[str] = None


@dataclass
class RouteResult:
    target: Target
    result: Any
    attempts: int
    latency_ms: float


class VirtualRouter:
    """
    Routes virtual model ids to concrete backend targets

    One instance per process owns every mutable routing map. Construct it
    directly for tests, or with ``from_settings`` to load the router document.
    """

    def __init__(
        self,
        config: Optional[LoadedConfig] = None,
        settings: Optional[RouterSettings] = None,
        clock: Callable[[], float] = wall_clock_ms,
        rng: Optional[random.Random] = None,
        sleep: Sleep = asyncio.sleep,
        events: Optional[RoutingEventLog] = None
    ):
        """
        Initialize the router

        Args:
            config: Loaded configuration generation; empty when omitted
            settings: Runtime settings (prefix, debug, Langfuse keys)
            clock: Epoch-milliseconds clock used by the cooldown store
            rng: Random source for the random and weighted strategies
            sleep: Awaitable sleep used between retries
            events: Routing event log; built from settings when omitted
        """
        self.settings = settings or RouterSettings()
        self.prefix = self.settings.prefix or DEFAULT_PREFIX
        self.config = config or LoadedConfig()

        self.cooldowns = CooldownStore(clock=clock)
        self.round_robin = RoundRobinCursors()
        self.sessions = SessionFallbackTracker(is_excluded=self.cooldowns.is_in_cooldown)
        self.metrics = MetricsAggregator()
        self.events = events or RoutingEventLog(self.settings)

        self._rng = rng or random.Random()
        self._sleep = sleep

        if self.settings.debug:
            logging.getLogger("virtual_router").setLevel(logging.DEBUG)

    @classmethod
    def from_settings(cls, settings: Optional[RouterSettings] = None, **kwargs) -> "VirtualRouter":
        settings = settings or RouterSettings.from_env()
        router = cls(settings=settings, **kwargs)
        router.reload(settings.config_path)
        return router

    # ================== Configuration ==================

    def load(self, config: LoadedConfig):
        """
        Swap in a new configuration generation

        Runtime state (cooldowns, cursors, metrics) is kept.
        """
        for error in validate_config(config):
            logger.warning(f"Config error: {error}")
        self.config = config

    def reload(self, path: Union[str, Path]) -> LoadedConfig:
        config = load_config_from_file(path, prefix=self.prefix)
        self.load(config)
        return config

    def virtual_model_id(self, name: str) -> str:
        """Canonical id for a bare alias or an already prefixed id"""
        return name if name.startswith(self.prefix) else f"{self.prefix}{name}"

    def get_model(self, model_id: str) -> Optional[VirtualModelConfig]:
        return self.config.virtual_models.get(self.virtual_model_id(model_id))

    def list_models(self) -> List[str]:
        return sorted(self.config.virtual_models)

    def policy_for(self, model_id: str) -> ResolvedPolicy:
        model = self._require(model_id)
        return merge_policy(model, resolve_profile(model, self.config.strategy_profiles))

    def _require(self, model_id: str) -> VirtualModelConfig:
        model = self.get_model(model_id)
        if model is None:
            raise UnknownVirtualModelError(self.virtual_model_id(model_id))
        return model

    # ================== Selection ==================

    def select(self, model_id: str) -> List[Target]:
        """Ordered candidate targets for a virtual model (advances round-robin state)"""
        model_id = self.virtual_model_id(model_id)
        return select_targets(model_id, self._require(model_id), self.round_robin, self._rng)

    def resolve(self, model_id: str) -> Optional[ResolvedTarget]:
        """
        Resolve a virtual model to its first target not in cooldown

        Returns:
            ResolvedTarget, or None when the model is unknown or every target is cooled down
        """
        model_id = self.virtual_model_id(model_id)
        if self.get_model(model_id) is None:
            logger.warning(f"resolve: unknown virtual model {model_id}")
            return None

        targets = self.select(model_id)
        for index, target in enumerate(targets):
            if self.cooldowns.is_in_cooldown(target.key):
                logger.debug(f"resolve: skipping {target.key} (in cooldown)")
                continue
            return ResolvedTarget(target.provider, target.model_id, index, targets)

        logger.warning(f"resolve: all targets in cooldown for {model_id}")
        return None

    # ================== Session Fallback ==================

    def dispatch(self, session_id: str, model_id: str) -> Optional[ResolvedTarget]:
        """
        Pick the target for a session's request

        The first dispatch binds the session to a freshly ordered target list;
        later dispatches resume from the session's cursor.

        Returns:
            ResolvedTarget, or None when the model is unknown or no target is viable
        """
        model_id = self.virtual_model_id(model_id)
        if self.get_model(model_id) is None:
            return None

        cursor = self.sessions.dispatch(session_id, model_id, lambda: self.select(model_id))
        if cursor is None:
            logger.warning(f"dispatch: all targets in cooldown for {model_id}")
            return None

        target = cursor.target
        logger.debug(f"dispatch: {model_id} -> {target.key} (session {session_id})")
        return ResolvedTarget(target.provider, target.model_id, cursor.index, cursor.targets)

    def should_fallback(self, model_id: str, report: FailureReport) -> bool:
        """Decide whether a failure report warrants moving to the next target"""
        trigger = self.policy_for(model_id).fallback_on

        if trigger.kind == TriggerKind.ANY_ERROR:
            return True
        if report.status_code is not None and trigger.matches(report.status_code):
            return True
        return report.error_name in AUTH_ERROR_NAMES

    def report_failure(self, session_id: str, report: FailureReport) -> FallbackStep:
        """
        Handle a failure notification for a session

        Places the session's current target in cooldown, records the failure
        and advances the session to the next viable target. Reports that do not
        match the fallback trigger leave the session where it is; such a step
        has no ``failed`` target.

        Returns:
            FallbackStep; ``exhausted`` once no target remains
        """
        model_id = self.sessions.model_for(session_id)
        if model_id is None:
            return FallbackStep()

        if self.get_model(model_id) is None:
            self.sessions.drop(session_id)
            return FallbackStep()

        policy = self.policy_for(model_id)
        if not self.should_fallback(model_id, report):
            current = self.sessions.get(session_id)
            if current is None:
                return FallbackStep()
            return FallbackStep(target=current.target, index=current.index)

        step = self.sessions.advance(session_id, exclude_failed=policy.cooldown is not None)
        if step.failed is None:
            return step

        failed_key = step.failed.key
        self.metrics.record_failure(failed_key)
        self.metrics.record_fallback(failed_key)
        until = self.cooldowns.set_cooldown(failed_key, policy.cooldown)
        if until is not None:
            self.events.cooldown(failed_key, until)

        reason = report.status_code if report.status_code is not None else report.error_name
        self.events.fallback(model_id, step.failed.key, reason, step.target.key if step.target else None)
        if step.exhausted:
            self.events.exhausted(model_id)
        return step

    # ================== Full Routing ==================

    async def route(
        self,
        model_id: str,
        attempt: Callable[[Target], Awaitable[Any]]
    ) -> RouteResult:
        """
        Walk a virtual model's targets until one succeeds

        Each target is driven by the retry/backoff executor. A target that
        exhausts its retries is cooled down and, unless the policy says
        ``throw``, the next viable target is tried.

        Args:
            model_id: Virtual model id or bare alias
            attempt: Coroutine function performing one attempt against a target

        Returns:
            RouteResult for the first successful target

        Raises:
            UnknownVirtualModelError: If the model is not configured
            TargetFailedError: If a target fails and the policy's on_fail is throw
            NoViableTargetError: If every target is cooled down or failed
        """
        model_id = self.virtual_model_id(model_id)
        policy = self.policy_for(model_id)
        targets = self.select(model_id)

        last_status: Optional[int] = None
        last_error: Optional[BaseException] = None

        for index, target in enumerate(targets):
            key = target.key
            if self.cooldowns.is_in_cooldown(key):
                logger.debug(f"route: skipping {key} (in cooldown)")
                continue

            started = time.perf_counter()
            outcome = await execute_with_backoff(
                lambda t=target: attempt(t), policy, sleep=self._sleep
            )
            latency_ms = (time.perf_counter() - started) * 1000.0

            if outcome.ok:
                self.metrics.record_success(key, latency_ms)
                self.events.routed(model_id, key, outcome.last_status, latency_ms)
                return RouteResult(target, outcome.result, outcome.attempts, latency_ms)

            last_status, last_error = outcome.last_status, outcome.last_error
            self.metrics.record_failure(key)
            self.metrics.record_fallback(key)
            until = self.cooldowns.set_cooldown(key, policy.cooldown)
            if until is not None:
                self.events.cooldown(key, until)

            if policy.on_fail == OnFailPolicy.THROW:
                self.events.fallback(model_id, key, last_status, None)
                raise TargetFailedError(model_id, key, last_status, last_error)

            self.events.fallback(model_id, key, last_status, self._peek_next(targets, index + 1))

        self.events.exhausted(model_id)
        raise NoViableTargetError(model_id, last_status, last_error)

    def _peek_next(self, targets: List[Target], start: int) -> Optional[str]:
        for target in targets[start:]:
            if not self.cooldowns.is_in_cooldown(target.key):
                return target.key
        return None

    # ================== Observability ==================

    def metrics_summary(self) -> Dict[str, Dict[str, Any]]:
        return self.metrics.summary()

    def active_cooldowns(self) -> Dict[str, float]:
        return self.cooldowns.active()
