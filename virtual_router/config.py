"""
Router Configuration Schema and Loader

This module defines the configuration document for virtual models: shared
strategy profiles, virtual model definitions and their concrete targets.
Loading is partial-failure tolerant: every entry is validated on its own,
invalid entries are dropped with a human-readable warning and the rest of
the document stays usable.
"""

import copy
import json
import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, FrozenSet, Iterable, List, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from virtual_router.duration import parse_duration
from virtual_router.exceptions import ConfigError

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

DEFAULT_PREFIX = "virtual/"
ANY_ERROR = "any_error"


class Strategy(str, Enum):
    """Target ordering strategies"""
    SEQUENTIAL = "sequential"
    PRIORITY = "priority"
    ROUND_ROBIN = "round_robin"
    RANDOM = "random"
    WEIGHTED = "weighted"


class BackoffType(str, Enum):
    EXPONENTIAL = "exponential"
    LINEAR = "linear"
    FIXED = "fixed"


class OnFailPolicy(str, Enum):
    """What to do once a target has used up its retries"""
    THROW = "throw"
    CONTINUE_WITH_NEXT = "continue_with_next"


class TriggerKind(str, Enum):
    ANY_ERROR = "any_error"
    STATUS_CODES = "status_codes"


@dataclass(frozen=True)
class FallbackTrigger:
    """
    Decides which attempt outcomes count as failures worth falling back on

    Either the "any_error" sentinel (every status >= 400) or an explicit set of
    status codes matched by exact membership.
    """
    kind: TriggerKind
    status_codes: FrozenSet[int] = frozenset()

    @classmethod
    def any_error(cls) -> "FallbackTrigger":
        return cls(kind=TriggerKind.ANY_ERROR)

    @classmethod
    def of_codes(cls, codes: Iterable[int]) -> "FallbackTrigger":
        return cls(kind=TriggerKind.STATUS_CODES, status_codes=frozenset(codes))

    @classmethod
    def from_raw(cls, raw: Any) -> "FallbackTrigger":
        """
        Build a trigger from its document form

        Args:
            raw: A list of integer status codes, ``["any_error"]`` or ``"any_error"``

        Raises:
            ValueError: If the value is neither form
        """
        if isinstance(raw, cls):
            return raw
        if raw == ANY_ERROR:
            return cls.any_error()
        if not isinstance(raw, (list, tuple, set, frozenset)):
            raise ValueError("fallback_on must be a list of status codes or [\"any_error\"]")
        if ANY_ERROR in raw:
            return cls.any_error()

        codes = []
        for item in raw:
            if isinstance(item, bool) or not isinstance(item, int):
                raise ValueError(f"fallback_on entry {item!r} is not an integer status code")
            codes.append(item)
        return cls.of_codes(codes)

    def matches(self, status: int) -> bool:
        if self.kind == TriggerKind.ANY_ERROR:
            return status >= 400
        return status in self.status_codes

    def to_raw(self) -> List[Union[int, str]]:
        if self.kind == TriggerKind.ANY_ERROR:
            return [ANY_ERROR]
        return sorted(self.status_codes)


def normalize_model_id(provider: str, model: str) -> str:
    """Strip a redundant provider prefix ("anthropic/claude-3" -> "claude-3")"""
    prefix = f"{provider}/"
    return model[len(prefix):] if model.startswith(prefix) else model


def _check_duration(value: Optional[str]) -> Optional[str]:
    if value is not None:
        parse_duration(value)
    return value


class Target(BaseModel):
    """One concrete (provider, model) pair a virtual model may resolve to"""
    model_config = ConfigDict(frozen=True)

    provider: str = Field(..., min_length=1)
    model: str = Field(..., min_length=1)
    weight: Optional[float] = Field(None, ge=0)

    @property
    def model_id(self) -> str:
        return normalize_model_id(self.provider, self.model)

    @property
    def key(self) -> str:
        return f"{self.provider}/{self.model_id}"


class BackoffSpec(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: BackoffType = BackoffType.EXPONENTIAL
    initial: str = "500ms"
    multiplier: float = Field(2.0, gt=0)
    max: str = "30s"

    check_durations = field_validator("initial", "max")(_check_duration)


class StrategyProfile(BaseModel):
    """Named, reusable retry/backoff/fallback policy shared across virtual models"""
    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    max_retries: int = Field(..., ge=0)
    timeout: Optional[str] = None
    backoff: Optional[BackoffSpec] = None
    fallback_on: Optional[FallbackTrigger] = None
    on_fail: Optional[OnFailPolicy] = None
    cooldown: Optional[str] = None

    check_durations = field_validator("timeout", "cooldown")(_check_duration)

    @field_validator("fallback_on", mode="before")
    @classmethod
    def _parse_trigger(cls, value: Any) -> Optional[FallbackTrigger]:
        return None if value is None else FallbackTrigger.from_raw(value)


class VirtualModelConfig(BaseModel):
    """A logical routing alias and its ordered candidate targets"""
    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    strategy: Strategy = Strategy.SEQUENTIAL
    strategy_profile: Optional[str] = None
    fallback_on: Optional[FallbackTrigger] = None
    cooldown: Optional[str] = None
    targets: Tuple[Target, ...] = Field(..., min_length=1)

    check_durations = field_validator("cooldown")(_check_duration)

    @field_validator("strategy", mode="before")
    @classmethod
    def _default_strategy(cls, value: Any) -> Any:
        return Strategy.SEQUENTIAL if value is None else value

    @field_validator("fallback_on", mode="before")
    @classmethod
    def _parse_trigger(cls, value: Any) -> Optional[FallbackTrigger]:
        return None if value is None else FallbackTrigger.from_raw(value)

    @model_validator(mode="after")
    def _check_weights(self) -> "VirtualModelConfig":
        if self.strategy == Strategy.WEIGHTED and any(t.weight is None for t in self.targets):
            raise ValueError("weighted strategy requires every target to declare a weight")
        return self


@dataclass
class LoadedConfig:
    """One configuration generation: read-only once loaded"""
    virtual_models: Dict[str, VirtualModelConfig] = field(default_factory=dict)
    strategy_profiles: Dict[str, StrategyProfile] = field(default_factory=dict)
    warnings: List[str] = field(default_factory=list)


def _describe(exc: ValidationError) -> str:
    parts = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err.get("loc", ()))
        msg = err.get("msg", "invalid")
        parts.append(f"{loc}: {msg}" if loc else msg)
    return "; ".join(parts)


def load_config(raw: Any, prefix: str = DEFAULT_PREFIX) -> LoadedConfig:
    """
    Build a configuration generation from a decoded router document

    Args:
        raw: Decoded document with optional "strategies" and "models" mappings
        prefix: Prefix under which virtual model names are registered

    Returns:
        LoadedConfig holding every valid entry and the warnings for rejected ones
    """
    loaded = LoadedConfig()

    if raw is None:
        return loaded
    if not isinstance(raw, dict):
        loaded.warnings.append("Router document must be a JSON object; ignoring it")
        return loaded

    profiles_raw = raw.get("strategies") or {}
    models_raw = raw.get("models") or {}

    if not isinstance(profiles_raw, dict):
        loaded.warnings.append('"strategies" must be an object; ignoring all profiles')
        profiles_raw = {}
    if not isinstance(models_raw, dict):
        loaded.warnings.append('"models" must be an object; ignoring all virtual models')
        models_raw = {}

    for name, profile_raw in profiles_raw.items():
        try:
            loaded.strategy_profiles[name] = StrategyProfile.model_validate(profile_raw)
        except ValidationError as e:
            loaded.warnings.append(f'Strategy profile "{name}" rejected: {_describe(e)}')

    for name, model_raw in models_raw.items():
        try:
            model = VirtualModelConfig.model_validate(model_raw)
        except ValidationError as e:
            loaded.warnings.append(f'Virtual model "{name}" rejected: {_describe(e)}')
            continue

        if model.strategy_profile and model.strategy_profile not in loaded.strategy_profiles:
            loaded.warnings.append(
                f'Virtual model "{name}" rejected: strategy profile '
                f'"{model.strategy_profile}" not found'
            )
            continue

        loaded.virtual_models[f"{prefix}{name}"] = model

    for warning in loaded.warnings:
        logger.warning(f"Config: {warning}")

    logger.info(
        f"Loaded {len(loaded.virtual_models)} virtual model(s), "
        f"{len(loaded.strategy_profiles)} strategy profile(s)"
    )
    return loaded


def load_config_from_file(path: Union[str, Path], prefix: str = DEFAULT_PREFIX) -> LoadedConfig:
    """
    Load the router document from a JSON file

    A missing file is a normal state (no virtual models defined yet) and
    yields an empty configuration.

    Raises:
        ConfigError: If the file exists but cannot be read or decoded
    """
    path = Path(path)
    if not path.exists():
        logger.info(f"No router config at {path}; no virtual models loaded")
        return LoadedConfig()

    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        raise ConfigError(f"Failed to parse {path}: {e}") from e

    return load_config(raw, prefix=prefix)


def validate_config(config: LoadedConfig) -> List[str]:
    """
    Re-check a loaded configuration

    Returns:
        Error strings; empty when everything is consistent
    """
    errors = []

    for model_id, model in config.virtual_models.items():
        if not model.targets:
            errors.append(f'Model "{model_id}" has no targets')
        for target in model.targets:
            if not target.model or not target.provider:
                errors.append(f'Model "{model_id}" has target missing model or provider field')
        if model.strategy == Strategy.WEIGHTED and not all(t.weight is not None for t in model.targets):
            errors.append(f'Model "{model_id}" uses weighted strategy but not all targets have weights')
        if model.strategy_profile and model.strategy_profile not in config.strategy_profiles:
            errors.append(f'Model "{model_id}" references unknown strategy profile "{model.strategy_profile}"')

    return errors


def build_virtual_catalog(
    config: LoadedConfig,
    catalog: List[Dict[str, Any]],
    prefix: str = DEFAULT_PREFIX
) -> Dict[str, Dict[str, Any]]:
    """
    Derive catalog metadata for each virtual alias from its primary target

    Args:
        config: Loaded configuration
        catalog: Provider entries shaped like ``{"id": ..., "models": {model_id: {...}}}``
        prefix: Prefix stripped from virtual model ids to form alias names

    Returns:
        Alias name -> copy of the primary target's catalog entry with ``id`` set to the alias
    """
    providers = {entry.get("id"): entry for entry in catalog}
    aliases: Dict[str, Dict[str, Any]] = {}

    for model_id, model in config.virtual_models.items():
        alias = model_id[len(prefix):] if model_id.startswith(prefix) else model_id
        primary = model.targets[0]

        provider_entry = providers.get(primary.provider)
        if provider_entry is None:
            logger.warning(f'Cannot register {model_id}: provider "{primary.provider}" not found in catalog')
            continue

        source = (provider_entry.get("models") or {}).get(primary.model_id)
        if source is None:
            logger.warning(
                f'Cannot register {model_id}: model "{primary.model_id}" '
                f'not found for provider "{primary.provider}"'
            )
            continue

        entry = copy.deepcopy(source)
        if isinstance(entry, dict):
            entry["id"] = alias
        aliases[alias] = entry

    return aliases
