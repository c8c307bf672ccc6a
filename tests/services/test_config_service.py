"""Versioned configuration parameters."""

import logging
from decimal import Decimal

import pytest

from chama_config import ParameterDef
from chama_kernel.exceptions import ConfigParameterNotFoundError, InvalidFieldError
from chama_kernel.models.audit_log import AuditAction

ACTOR = "treasurer"


class TestConfigService:
    def test_seed_defaults(self, config_service, snapshot):
        assert config_service.get("share_value") == Decimal("2000.00")
        assert config_service.get("penalty_rate") == Decimal("5.00")
        assert config_service.get("base_interest_rate") == Decimal("10.00")
        assert snapshot.share_value == Decimal("2000.00")

    def test_seed_never_overwrites(self, config_service, snapshot):
        config_service.set("share_value", "2500", ACTOR)
        created = config_service.seed_defaults(
            [ParameterDef("share_value", Decimal("2000")), ParameterDef("meeting_fine", Decimal("100"))],
            ACTOR,
        )

        assert created == ["meeting_fine"]
        assert config_service.get("share_value") == Decimal("2500")

    def test_set_bumps_version_and_audits(self, config_service, auditor, snapshot):
        parameter = config_service.set("share_value", "2500", ACTOR)

        assert parameter.version == 2
        assert parameter.updated_by == ACTOR
        trace = auditor.get_trace("config_parameters", parameter.id)
        assert [e.action for e in trace] == [AuditAction.CONFIG_CHANGED, AuditAction.CONFIG_CHANGED]
        assert trace[-1].payload["old_value"] == "2000.00"
        assert trace[-1].payload["new_value"] == "2500"

    def test_snapshot_is_frozen(self, config_service, snapshot):
        config_service.set("share_value", "2500", ACTOR)

        assert snapshot.share_value == Decimal("2000.00")
        assert config_service.snapshot().share_value == Decimal("2500")
        assert config_service.snapshot().fingerprint != snapshot.fingerprint

    def test_unknown_key(self, config_service):
        with pytest.raises(ConfigParameterNotFoundError):
            config_service.get("share_value")

    @pytest.mark.parametrize("value", ["-1", "abc", "NaN", "-Infinity"])
    def test_invalid_value(self, config_service, value):
        with pytest.raises(InvalidFieldError):
            config_service.set("share_value", value, ACTOR)


class TestSeedLogging:
    def test_seed_logs_created_keys_at_info(self, config_service, captured_logs):
        kernel_logger = logging.getLogger("chama_kernel")
        previous = kernel_logger.level
        kernel_logger.setLevel(logging.INFO)
        try:
            created = config_service.seed_defaults(
                [ParameterDef("share_value", Decimal("2000")), ParameterDef("penalty_rate", Decimal("5"))],
                ACTOR,
            )
        finally:
            kernel_logger.setLevel(previous)

        assert created == ["share_value", "penalty_rate"]
        records = [r for r in captured_logs() if r["message"] == "config_defaults_seeded"]
        assert len(records) == 1
        assert records[0]["created_keys"] == ["share_value", "penalty_rate"]
