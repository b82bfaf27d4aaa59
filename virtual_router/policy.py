"""
Effective per-model policy

A virtual model may reference a shared strategy profile. The resolved policy
overlays the model's own fields on the profile: model-level fields win, the
profile fills the gaps, and fixed defaults cover what neither side sets.
"""

from dataclasses import dataclass
from typing import Mapping, Optional

from virtual_router.config import (
    BackoffSpec,
    FallbackTrigger,
    OnFailPolicy,
    StrategyProfile,
    VirtualModelConfig,
)

DEFAULT_FALLBACK_TRIGGER = FallbackTrigger.of_codes({429, 500, 503})


@dataclass(frozen=True)
class ResolvedPolicy:
    fallback_on: FallbackTrigger = DEFAULT_FALLBACK_TRIGGER
    cooldown: Optional[str] = None
    max_retries: int = 0
    backoff: Optional[BackoffSpec] = None
    timeout: Optional[str] = None
    on_fail: OnFailPolicy = OnFailPolicy.CONTINUE_WITH_NEXT


def resolve_profile(
    model: VirtualModelConfig,
    profiles: Mapping[str, StrategyProfile]
) -> Optional[StrategyProfile]:
    """Look up the model's profile; None when unset or unknown"""
    if not model.strategy_profile:
        return None
    return profiles.get(model.strategy_profile)


def merge_policy(model: VirtualModelConfig, profile: Optional[StrategyProfile]) -> ResolvedPolicy:
    """
    Merge a model's inline config with its strategy profile

    Retries, backoff and timeout come from the profile only; the model can
    override the fallback trigger and the cooldown.
    """
    fallback_on = model.fallback_on
    if fallback_on is None and profile is not None:
        fallback_on = profile.fallback_on

    cooldown = model.cooldown
    if cooldown is None and profile is not None:
        cooldown = profile.cooldown

    if profile is None:
        return ResolvedPolicy(
            fallback_on=fallback_on or DEFAULT_FALLBACK_TRIGGER,
            cooldown=cooldown,
        )

    return ResolvedPolicy(
        fallback_on=fallback_on or DEFAULT_FALLBACK_TRIGGER,
        cooldown=cooldown,
        max_retries=profile.max_retries,
        backoff=profile.backoff,
        timeout=profile.timeout,
        on_fail=profile.on_fail or OnFailPolicy.CONTINUE_WITH_NEXT,
    )
