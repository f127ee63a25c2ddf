"""
Engine configuration.

Configuration can be supplied as a dict, a pydantic model or a YAML/JSON
file. Keys accept both snake_case and camelCase.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator

from .limits import ExpressionLimits
from .registry import BINARY_FUNCTIONS


class OperatorConfig(BaseModel):
    """An operator entry; ``function`` names a built-in binary function."""

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    level: int
    function: str
    right_associative: bool = Field(default=False, alias="rightAssociative")

    @field_validator("function")
    @classmethod
    def _check_function(cls, value: str) -> str:
        if value not in BINARY_FUNCTIONS:
            known = ", ".join(sorted(BINARY_FUNCTIONS))
            raise ValueError(f"Unknown binary function {value!r} (expected one of: {known})")
        return value


class EngineConfig(BaseModel):
    """Configuration applied on top of the default registries."""

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    # Constants to add or override
    constants: Dict[str, float] = Field(default_factory=dict)

    # Operators to add or override, keyed by symbol
    operators: Dict[str, OperatorConfig] = Field(default_factory=dict)

    # Functions removed from the default table
    disabled_functions: List[str] = Field(default_factory=list, alias="disabledFunctions")

    # Expression limits
    limits: Optional[ExpressionLimits] = None


def load_engine_config(path: Union[str, Path]) -> EngineConfig:
    """
    Loads an engine configuration file.

    JSON is accepted as well since it is a subset of YAML.

    Raises:
        ValueError: If the document is not a mapping
        pydantic.ValidationError: If the document does not validate
    """
    content = Path(path).read_text(encoding="utf-8")
    data: Any = yaml.safe_load(content) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Engine configuration in {path} must be a mapping")
    return EngineConfig.model_validate(data)
