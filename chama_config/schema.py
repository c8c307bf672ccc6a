"""
ChamaConfiguration schema.

Defines the human-authored configuration set for a chama: where its
database lives, how it logs, and the starting values of its numeric
parameters.  YAML files are parsed into these types by the loader.

Key distinction:
  ChamaConfiguration = source artifact (YAML, versioned with the code)
  ConfigParameter    = runtime row (seeded once, then changed through
                       ConfigService with a version and audit trail)
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal


@dataclass(frozen=True)
class ParameterDef:
    """Default value of one configuration parameter."""

    key: str
    value: Decimal
    description: str | None = None


@dataclass(frozen=True)
class ChamaConfiguration:
    """A complete, parsed configuration set."""

    name: str
    group_name: str
    currency: str
    database_url: str
    log_level: str
    parameters: tuple[ParameterDef, ...]
    checksum: str = ""

    def parameter(self, key: str) -> ParameterDef | None:
        for definition in self.parameters:
            if definition.key == key:
                return definition
        return None
