"""Consensus configuration: validation, env loading and per-run override merging."""

import dataclasses
import logging
from typing import Any, Optional

import config as app_config
from compliance.types import ViolationType
from utils.errors import ConfigurationError

from .types import AgentRole, ConsensusConfig, DecisionType

logger = logging.getLogger(__name__)

_NESTED_FIELDS = {"agent_weights": AgentRole, "compliance_penalties": ViolationType}
_SCALAR_FIELDS = {
    f.name: f.type for f in dataclasses.fields(ConsensusConfig) if f.type in (bool, int, float)
}
_OVERRIDABLE_FIELDS = {
    f.name for f in dataclasses.fields(ConsensusConfig) if f.name != "decision_type_overrides"
}
_TYPE_LABELS = {bool: "true or false", int: "an integer", float: "numeric"}


def _type_problem(name: str, expected: type, value: Any) -> Optional[str]:
    # bool is an int subclass, so it is ruled out explicitly for numeric fields
    if expected is bool:
        ok = isinstance(value, bool)
    elif expected is int:
        ok = isinstance(value, int) and not isinstance(value, bool)
    else:
        ok = isinstance(value, (int, float)) and not isinstance(value, bool)
    if ok:
        return None
    return f"{name} must be {_TYPE_LABELS[expected]}, got {value!r}"


def validate_consensus_config(config: ConsensusConfig) -> ConsensusConfig:
    """Raise ConfigurationError if any invariant fails, otherwise return config unchanged."""
    problems = []
    for name, expected in _SCALAR_FIELDS.items():
        problems.append(_type_problem(name, expected, getattr(config, name)))
    for name in _NESTED_FIELDS:
        for key, value in getattr(config, name).items():
            problems.append(_type_problem(f"{name}[{getattr(key, 'value', key)}]", float, value))
    problems = [p for p in problems if p]
    if problems:
        raise ConfigurationError("Invalid consensus configuration: " + "; ".join(problems),
                                 details={"problems": problems})

    if not 0 < config.majority_threshold <= 1:
        problems.append(f"majority_threshold must be in (0, 1], got {config.majority_threshold}")
    if not isinstance(config.max_debate_rounds, int) or config.max_debate_rounds < 0:
        problems.append(f"max_debate_rounds must be a non-negative integer, got {config.max_debate_rounds}")
    if not 0 <= config.minimum_confidence_threshold <= 100:
        problems.append(
            f"minimum_confidence_threshold must be in [0, 100], got {config.minimum_confidence_threshold}"
        )
    if config.agent_timeout_seconds <= 0:
        problems.append(f"agent_timeout_seconds must be positive, got {config.agent_timeout_seconds}")
    if config.default_hourly_rate <= 0:
        problems.append(f"default_hourly_rate must be positive, got {config.default_hourly_rate}")
    if config.overtime_premium < 1:
        problems.append(f"overtime_premium must be >= 1, got {config.overtime_premium}")

    for role in AgentRole:
        weight = config.agent_weights.get(role, 1.0)
        if weight <= 0:
            problems.append(f"agent weight for {role.value} must be positive, got {weight}")
    for kind, penalty in config.compliance_penalties.items():
        if penalty < 0:
            problems.append(f"compliance penalty for {kind.value} must be >= 0, got {penalty}")

    if problems:
        raise ConfigurationError("Invalid consensus configuration: " + "; ".join(problems),
                                 details={"problems": problems})
    return config


def _coerce_key(enum_cls, key):
    if isinstance(key, enum_cls):
        return key
    try:
        return enum_cls(key)
    except ValueError:
        raise ConfigurationError(f"Unknown {enum_cls.__name__} key: {key!r}")


def _merge(base: ConsensusConfig, override: dict[str, Any]) -> ConsensusConfig:
    unknown = set(override) - _OVERRIDABLE_FIELDS
    if unknown:
        raise ConfigurationError(
            f"Unknown consensus config fields: {', '.join(sorted(unknown))}",
            details={"fields": sorted(unknown)},
        )

    changes: dict[str, Any] = {}
    for name, value in override.items():
        if value is None:
            continue
        if name in _NESTED_FIELDS:
            if not isinstance(value, dict):
                raise ConfigurationError(f"{name} override must be a mapping")
            enum_cls = _NESTED_FIELDS[name]
            merged = dict(getattr(base, name))
            for key, item in value.items():
                problem = _type_problem(f"{name}[{key}]", float, item)
                if problem:
                    raise ConfigurationError(f"Invalid consensus override: {problem}")
                merged[_coerce_key(enum_cls, key)] = float(item)
            changes[name] = merged
        elif name in _SCALAR_FIELDS:
            expected = _SCALAR_FIELDS[name]
            problem = _type_problem(name, expected, value)
            if problem:
                raise ConfigurationError(f"Invalid consensus override: {problem}",
                                         details={"field": name})
            changes[name] = float(value) if expected is float else value
        else:
            changes[name] = value
    return dataclasses.replace(base, **changes)


def resolve_config(
    base: ConsensusConfig,
    decision_type: DecisionType,
    override: Optional[dict[str, Any]] = None,
) -> ConsensusConfig:
    """
    Produce the single immutable config used for one orchestration run.

    Layers, later wins: base config, the base's override for this decision
    type, then the caller's partial override. Nested weight maps are merged
    key by key.
    """
    resolved = base
    type_override = base.decision_type_overrides.get(decision_type)
    if type_override:
        resolved = _merge(resolved, type_override)
    if override:
        resolved = _merge(resolved, override)
    return validate_consensus_config(resolved)


def consensus_config_from_env() -> ConsensusConfig:
    """Default config with any CONSENSUS_* environment overrides applied."""
    changes: dict[str, Any] = {}
    try:
        if app_config.CONSENSUS_MAJORITY_THRESHOLD:
            changes["majority_threshold"] = float(app_config.CONSENSUS_MAJORITY_THRESHOLD)
        if app_config.CONSENSUS_MAX_DEBATE_ROUNDS:
            changes["max_debate_rounds"] = int(app_config.CONSENSUS_MAX_DEBATE_ROUNDS)
        if app_config.CONSENSUS_AGENT_TIMEOUT_SECONDS:
            changes["agent_timeout_seconds"] = float(app_config.CONSENSUS_AGENT_TIMEOUT_SECONDS)
    except ValueError as e:
        raise ConfigurationError(f"Invalid CONSENSUS_* environment variable: {e}")

    if changes:
        logger.info(f"Consensus config overrides from environment: {changes}")
    return validate_consensus_config(ConsensusConfig(**changes))


DEFAULT_CONSENSUS_CONFIG = validate_consensus_config(ConsensusConfig())
