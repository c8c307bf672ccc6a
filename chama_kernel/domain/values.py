"""ConfigSnapshot -- frozen view of the configuration parameters."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from chama_kernel.exceptions import ConfigParameterNotFoundError
from chama_kernel.utils.hashing import hash_payload

SHARE_VALUE = "share_value"
PENALTY_RATE = "penalty_rate"
BASE_INTEREST_RATE = "base_interest_rate"


@dataclass(frozen=True, slots=True)
class ConfigSnapshot:
    """
    Immutable set of parameter values taken at one point in time.

    Batch jobs receive a snapshot instead of reading the parameter table,
    so two runs given the same snapshot compute the same amounts.  The
    fingerprint identifies the values and is stored on each batch run.
    """

    parameters: tuple[tuple[str, Decimal], ...]
    fingerprint: str
    taken_at: datetime | None = None

    @classmethod
    def from_mapping(
        cls,
        values: Mapping[str, Decimal],
        taken_at: datetime | None = None,
    ) -> ConfigSnapshot:
        parameters = tuple(sorted((key, Decimal(value)) for key, value in values.items()))
        fingerprint = hash_payload({key: str(value) for key, value in parameters})
        return cls(parameters=parameters, fingerprint=fingerprint, taken_at=taken_at)

    def get(self, key: str) -> Decimal | None:
        for name, value in self.parameters:
            if name == key:
                return value
        return None

    def require(self, key: str) -> Decimal:
        value = self.get(key)
        if value is None:
            raise ConfigParameterNotFoundError(key)
        return value

    def as_dict(self) -> dict[str, Decimal]:
        return dict(self.parameters)

    @property
    def share_value(self) -> Decimal:
        return self.require(SHARE_VALUE)

    @property
    def penalty_rate(self) -> Decimal:
        return self.require(PENALTY_RATE)

    @property
    def base_interest_rate(self) -> Decimal:
        return self.require(BASE_INTEREST_RATE)
