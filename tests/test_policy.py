"""Tests for model/profile policy merging."""

from virtual_router.config import (
    BackoffSpec,
    FallbackTrigger,
    OnFailPolicy,
    StrategyProfile,
    Target,
    VirtualModelConfig,
)
from virtual_router.policy import DEFAULT_FALLBACK_TRIGGER, merge_policy, resolve_profile

TARGETS = [Target(provider="anthropic", model="claude")]


def _model(**kwargs) -> VirtualModelConfig:
    return VirtualModelConfig(targets=TARGETS, **kwargs)


def test_resolve_profile_lookup():
    profile = StrategyProfile(max_retries=1)
    profiles = {"p": profile}

    assert resolve_profile(_model(strategy_profile="p"), profiles) is profile
    assert resolve_profile(_model(strategy_profile="missing"), profiles) is None
    assert resolve_profile(_model(), profiles) is None


def test_defaults_without_profile():
    policy = merge_policy(_model(), None)

    assert policy.fallback_on == FallbackTrigger.of_codes({429, 500, 503})
    assert policy.cooldown is None
    assert policy.max_retries == 0
    assert policy.backoff is None
    assert policy.on_fail == OnFailPolicy.CONTINUE_WITH_NEXT


def test_absence_on_both_sides_yields_default_trigger():
    policy = merge_policy(_model(), StrategyProfile(max_retries=2))

    assert policy.fallback_on == DEFAULT_FALLBACK_TRIGGER
    assert policy.fallback_on.status_codes == frozenset({429, 500, 503})


def test_model_trigger_overrides_profile():
    profile = StrategyProfile(max_retries=0, fallback_on=[503])
    policy = merge_policy(_model(fallback_on=[429]), profile)

    assert policy.fallback_on == FallbackTrigger.of_codes({429})


def test_profile_trigger_fills_gap():
    profile = StrategyProfile(max_retries=0, fallback_on=["any_error"])
    assert merge_policy(_model(), profile).fallback_on == FallbackTrigger.any_error()


def test_cooldown_model_wins_then_profile():
    profile = StrategyProfile(max_retries=0, cooldown="10m")

    assert merge_policy(_model(cooldown="1m"), profile).cooldown == "1m"
    assert merge_policy(_model(), profile).cooldown == "10m"


def test_retries_backoff_and_on_fail_come_from_profile():
    backoff = BackoffSpec(initial="100ms", multiplier=3, max="1s")
    profile = StrategyProfile(max_retries=3, backoff=backoff, on_fail="throw", timeout="20s")
    policy = merge_policy(_model(), profile)

    assert policy.max_retries == 3
    assert policy.backoff == backoff
    assert policy.on_fail == OnFailPolicy.THROW
    assert policy.timeout == "20s"


def test_merge_is_deterministic():
    profile = StrategyProfile(max_retries=1, fallback_on=[500], cooldown="5m")
    model = _model(strategy_profile="p")

    assert merge_policy(model, profile) == merge_policy(model, profile)
