"""
ConfigService -- versioned configuration parameters.

Responsibility:
    Reads and changes the named numeric parameters (share_value,
    penalty_rate, base_interest_rate), seeds them from a configuration set,
    and takes the immutable ConfigSnapshot handed to batch jobs.

Architecture position:
    Kernel > Services.  Seeded from ``chama_config`` by the CLI; the kernel
    itself never imports ``chama_config``.

Invariants enforced:
    - Every change increments the parameter's version and is audited.
    - Seeding never overwrites an existing value.
"""

from collections.abc import Iterable
from decimal import Decimal
from typing import Protocol

from sqlalchemy import select

from chama_kernel.domain.validation import require_non_negative
from chama_kernel.domain.values import ConfigSnapshot
from chama_kernel.exceptions import ConfigParameterNotFoundError
from chama_kernel.logging_config import get_logger
from chama_kernel.models.audit_log import AuditAction
from chama_kernel.models.config_parameter import ConfigParameter
from chama_kernel.services.auditor_service import AuditorService
from chama_kernel.services.base import BaseService

logger = get_logger("services.config")


class ParameterDefinition(Protocol):
    key: str
    value: Decimal
    description: str | None


class ConfigService(BaseService):
    """Read, change and snapshot configuration parameters."""

    def __init__(self, session, clock=None):
        super().__init__(session, clock)
        self._auditor = AuditorService(session, self.clock)

    def _find(self, key: str) -> ConfigParameter | None:
        return self.session.execute(
            select(ConfigParameter).where(ConfigParameter.key == key)
        ).scalar_one_or_none()

    def get(self, key: str) -> Decimal:
        parameter = self._find(key)
        if parameter is None:
            raise ConfigParameterNotFoundError(key)
        return parameter.value

    def get_parameter(self, key: str) -> ConfigParameter:
        parameter = self._find(key)
        if parameter is None:
            raise ConfigParameterNotFoundError(key)
        return parameter

    def set(self, key: str, value: Decimal | int | str, actor: str, description: str | None = None) -> ConfigParameter:
        """
        Create or change a parameter.

        Returns:
            The flushed ConfigParameter with its new version.
        """
        value = require_non_negative(value, key)

        parameter = self._find(key)
        previous = None
        with self.session.begin_nested():
            if parameter is None:
                parameter = ConfigParameter(
                    key=key,
                    value=value,
                    description=description,
                    version=1,
                    updated_by=actor,
                )
                self.session.add(parameter)
            else:
                previous = parameter.value
                parameter.value = value
                parameter.version += 1
                parameter.updated_by = actor
                if description is not None:
                    parameter.description = description
            self.session.flush()

            self._auditor.record(
                AuditAction.CONFIG_CHANGED,
                table_name="config_parameters",
                record_id=parameter.id,
                user=actor,
                details=f"{key} set to {value}",
                payload={
                    "key": key,
                    "old_value": previous,
                    "new_value": value,
                    "version": parameter.version,
                },
            )

        logger.info(
            "config_parameter_changed",
            extra={
                "key": key,
                "old_value": str(previous) if previous is not None else None,
                "new_value": str(value),
                "version": parameter.version,
            },
        )
        return parameter

    def seed_defaults(self, definitions: Iterable[ParameterDefinition], actor: str) -> list[str]:
        """
        Create any parameter from ``definitions`` that does not exist yet.

        Returns:
            Keys that were created.
        """
        created = []
        for definition in definitions:
            if self._find(definition.key) is not None:
                continue
            self.set(definition.key, definition.value, actor, description=definition.description)
            created.append(definition.key)

        logger.info("config_defaults_seeded", extra={"created_keys": created})
        return created

    def all_parameters(self) -> list[ConfigParameter]:
        return list(
            self.session.execute(select(ConfigParameter).order_by(ConfigParameter.key)).scalars().all()
        )

    def snapshot(self) -> ConfigSnapshot:
        """Freeze the current parameter values for a batch run."""
        values = {parameter.key: parameter.value for parameter in self.all_parameters()}
        snapshot = ConfigSnapshot.from_mapping(values, taken_at=self.clock.now())
        logger.debug(
            "config_snapshot_taken",
            extra={"fingerprint": snapshot.fingerprint, "keys": sorted(values)},
        )
        return snapshot
