"""Tests for environment config and consensus config resolution."""

import pytest

import config as app_config
from compliance.types import ViolationType
from consensus.config import (
    DEFAULT_CONSENSUS_CONFIG,
    consensus_config_from_env,
    resolve_config,
    validate_consensus_config,
)
from consensus.types import AgentRole, ConsensusConfig, DecisionType
from utils.errors import ConfigurationError


class TestResolveConfig:
    """Test layering of base config, decision-type overrides and per-run overrides."""

    def test_no_override_returns_base(self):
        resolved = resolve_config(DEFAULT_CONSENSUS_CONFIG, DecisionType.SHIFT_ASSIGNMENT)
        assert resolved == DEFAULT_CONSENSUS_CONFIG

    def test_scalar_override(self):
        resolved = resolve_config(
            DEFAULT_CONSENSUS_CONFIG, DecisionType.SHIFT_ASSIGNMENT, {"majority_threshold": 0.75}
        )

        assert resolved.majority_threshold == 0.75
        assert DEFAULT_CONSENSUS_CONFIG.majority_threshold == 0.66

    def test_none_values_are_ignored(self):
        resolved = resolve_config(
            DEFAULT_CONSENSUS_CONFIG, DecisionType.SHIFT_ASSIGNMENT, {"max_debate_rounds": None}
        )
        assert resolved.max_debate_rounds == 3

    def test_weights_merge_key_by_key(self):
        resolved = resolve_config(
            DEFAULT_CONSENSUS_CONFIG, DecisionType.SHIFT_ASSIGNMENT, {"agent_weights": {"cost_optimizer": 2}}
        )

        assert resolved.agent_weights[AgentRole.COST_OPTIMIZER] == 2.0
        assert resolved.agent_weights[AgentRole.COMPLIANCE] == 1.5

    def test_penalties_merge_key_by_key(self):
        resolved = resolve_config(
            DEFAULT_CONSENSUS_CONFIG,
            DecisionType.SHIFT_ASSIGNMENT,
            {"compliance_penalties": {ViolationType.REST_DAILY: 50}},
        )

        assert resolved.compliance_penalties[ViolationType.REST_DAILY] == 50.0
        assert resolved.compliance_penalties[ViolationType.PUBLISH_LATE] == 10.0

    def test_decision_type_override_then_caller_override(self):
        base = ConsensusConfig(
            decision_type_overrides={
                DecisionType.SHIFT_SWAP: {"max_debate_rounds": 1, "require_unanimous": True},
            }
        )

        swap = resolve_config(base, DecisionType.SHIFT_SWAP, {"max_debate_rounds": 2})
        assignment = resolve_config(base, DecisionType.SHIFT_ASSIGNMENT)

        assert swap.max_debate_rounds == 2
        assert swap.require_unanimous is True
        assert assignment.max_debate_rounds == 3

    @pytest.mark.parametrize("override,message", [
        ({"unknown": 1}, "Unknown consensus config fields: unknown"),
        ({"decision_type_overrides": {}}, "Unknown consensus config fields"),
        ({"agent_weights": {"nobody": 1}}, "Unknown AgentRole key"),
        ({"agent_weights": ["compliance"]}, "must be a mapping"),
        ({"compliance_penalties": {"REST_DAILY": "lots"}}, "must be numeric"),
        ({"majority_threshold": 0}, "majority_threshold"),
        ({"max_debate_rounds": -1}, "max_debate_rounds"),
        ({"agent_weights": {"operations": 0}}, "agent weight for operations"),
        ({"majority_threshold": "high"}, "majority_threshold must be numeric"),
        ({"require_unanimous": "yes"}, "require_unanimous must be true or false"),
        ({"escalate_on_deadlock": 1}, "escalate_on_deadlock must be true or false"),
        ({"max_debate_rounds": 2.5}, "max_debate_rounds must be an integer"),
        ({"max_debate_rounds": True}, "max_debate_rounds must be an integer"),
        ({"agent_timeout_seconds": False}, "agent_timeout_seconds must be numeric"),
        ({"agent_weights": {"operations": True}}, "agent_weights[operations] must be numeric"),
    ])
    def test_invalid_override(self, override, message):
        with pytest.raises(ConfigurationError) as exc_info:
            resolve_config(DEFAULT_CONSENSUS_CONFIG, DecisionType.SHIFT_ASSIGNMENT, override)
        assert message in exc_info.value.message

    def test_validation_collects_all_problems(self):
        config = ConsensusConfig(majority_threshold=1.5, agent_timeout_seconds=0, overtime_premium=0.5)

        with pytest.raises(ConfigurationError) as exc_info:
            validate_consensus_config(config)

        assert len(exc_info.value.details["problems"]) == 3

    def test_wrong_types_are_configuration_errors(self):
        config = ConsensusConfig(majority_threshold="high", require_unanimous="no")

        with pytest.raises(ConfigurationError) as exc_info:
            validate_consensus_config(config)

        assert exc_info.value.details["problems"] == [
            "require_unanimous must be true or false, got 'no'",
            "majority_threshold must be numeric, got 'high'",
        ]


class TestConsensusConfigFromEnv:
    """Test CONSENSUS_* environment overrides."""

    def test_defaults_without_env(self, monkeypatch):
        monkeypatch.setattr(app_config, "CONSENSUS_MAJORITY_THRESHOLD", None)
        monkeypatch.setattr(app_config, "CONSENSUS_MAX_DEBATE_ROUNDS", None)
        monkeypatch.setattr(app_config, "CONSENSUS_AGENT_TIMEOUT_SECONDS", None)

        assert consensus_config_from_env() == ConsensusConfig()

    def test_env_overrides(self, monkeypatch):
        monkeypatch.setattr(app_config, "CONSENSUS_MAJORITY_THRESHOLD", "0.75")
        monkeypatch.setattr(app_config, "CONSENSUS_MAX_DEBATE_ROUNDS", "5")
        monkeypatch.setattr(app_config, "CONSENSUS_AGENT_TIMEOUT_SECONDS", "2.5")

        config = consensus_config_from_env()

        assert config.majority_threshold == 0.75
        assert config.max_debate_rounds == 5
        assert config.agent_timeout_seconds == 2.5

    def test_non_numeric_env(self, monkeypatch):
        monkeypatch.setattr(app_config, "CONSENSUS_MAJORITY_THRESHOLD", None)
        monkeypatch.setattr(app_config, "CONSENSUS_MAX_DEBATE_ROUNDS", "three")
        monkeypatch.setattr(app_config, "CONSENSUS_AGENT_TIMEOUT_SECONDS", None)

        with pytest.raises(ConfigurationError):
            consensus_config_from_env()

    def test_out_of_range_env(self, monkeypatch):
        monkeypatch.setattr(app_config, "CONSENSUS_MAJORITY_THRESHOLD", "1.2")
        monkeypatch.setattr(app_config, "CONSENSUS_MAX_DEBATE_ROUNDS", None)
        monkeypatch.setattr(app_config, "CONSENSUS_AGENT_TIMEOUT_SECONDS", None)

        with pytest.raises(ConfigurationError):
            consensus_config_from_env()


class TestValidateConfig:
    """Test startup validation of environment variables."""

    @pytest.fixture(autouse=True)
    def clean_env(self, monkeypatch):
        monkeypatch.setattr(app_config, "MONGODB_URL", "mongodb://localhost:27017/test")
        monkeypatch.setattr(app_config, "APP_PORT", "8000")
        monkeypatch.setattr(app_config, "CONSENSUS_MAJORITY_THRESHOLD", None)
        monkeypatch.setattr(app_config, "CONSENSUS_MAX_DEBATE_ROUNDS", None)
        monkeypatch.setattr(app_config, "CONSENSUS_AGENT_TIMEOUT_SECONDS", None)
        for env_name in app_config.JURISDICTION_ENV_VARS.values():
            monkeypatch.delenv(env_name, raising=False)

    def test_valid_config(self):
        app_config.validate_config()

    def test_invalid_values_are_listed(self, monkeypatch):
        monkeypatch.setattr(app_config, "APP_PORT", "eighty")
        monkeypatch.setattr(app_config, "CONSENSUS_AGENT_TIMEOUT_SECONDS", "soon")
        monkeypatch.setenv("MAX_WEEKLY_WORK_HOURS", "forty")

        with pytest.raises(ConfigurationError) as exc_info:
            app_config.validate_config()

        assert exc_info.value.details["variables"] == [
            "APP_PORT",
            "CONSENSUS_AGENT_TIMEOUT_SECONDS",
            "MAX_WEEKLY_WORK_HOURS",
        ]

    def test_missing_mongodb_url(self, monkeypatch):
        monkeypatch.setattr(app_config, "MONGODB_URL", "")

        with pytest.raises(ConfigurationError) as exc_info:
            app_config.validate_config()

        assert "MONGODB_URL" in exc_info.value.message
