"""
interdataflow/config.py
=======================

Configuration for an interprocedural analysis run.

:class:`AnalysisConfig` mirrors the tuning-knob dataclasses used across the
package: plain fields with defaults, a :meth:`validate` method that lists
problems instead of raising, and constructors that turn untrusted input
(a mapping, a JSON file) into a checked configuration.

Options
-------
analysis_id
    Identifier of the analysis the configuration is for.
entry_methods
    Names of the methods the program starts in.  Their entry nodes receive
    the analysis' boundary fact.
strategy
    Worklist order, ``"fifo"`` or ``"lifo"``.  Both reach the same fixpoint.
max_iterations
    Optional safety bound on solver iterations.  ``None`` means unbounded.
warn_arity_mismatch
    Log a warning (instead of a debug message) when a call site passes a
    different number of arguments than the callee declares.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, List, Mapping, Optional, Tuple, Union

from interdataflow.dataflow_engine import WorklistStrategy
from interdataflow.errors import ConfigError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AnalysisConfig:
    """Tuning knobs for one analysis run."""

    analysis_id: str = "inter-constprop"
    entry_methods: Tuple[str, ...] = ("main",)
    strategy: WorklistStrategy = WorklistStrategy.FIFO
    max_iterations: Optional[int] = None
    warn_arity_mismatch: bool = False

    def validate(self) -> List[str]:
        """Return a list of problems (empty if valid)."""
        problems: List[str] = []
        if not self.analysis_id:
            problems.append("analysis_id must not be empty")
        if not self.entry_methods:
            problems.append("at least one entry method is required")
        if any(not name for name in self.entry_methods):
            problems.append("entry method names must not be empty")
        if self.max_iterations is not None and self.max_iterations <= 0:
            problems.append("max_iterations must be positive")
        return problems

    def with_options(self, **changes: Any) -> "AnalysisConfig":
        """Return a copy with *changes* applied and validated."""
        data = {f.name: getattr(self, f.name) for f in fields(self)}
        data.update(changes)
        return AnalysisConfig.from_mapping(data)

    # ------------------------------------------------------------------
    # Construction from untrusted input
    # ------------------------------------------------------------------

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "AnalysisConfig":
        """Build a configuration from a plain mapping (e.g. parsed JSON).

        Raises
        ------
        ConfigError
            On unknown keys, wrongly typed values, or failed validation.
        """
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ConfigError(f"unknown configuration keys: {', '.join(unknown)}")

        kwargs: dict = {}
        if "analysis_id" in data:
            kwargs["analysis_id"] = str(data["analysis_id"])
        if "entry_methods" in data:
            kwargs["entry_methods"] = _coerce_entries(data["entry_methods"])
        if "strategy" in data:
            kwargs["strategy"] = _coerce_strategy(data["strategy"])
        if "max_iterations" in data:
            kwargs["max_iterations"] = _coerce_optional_int(
                "max_iterations", data["max_iterations"]
            )
        if "warn_arity_mismatch" in data:
            value = data["warn_arity_mismatch"]
            if not isinstance(value, bool):
                raise ConfigError("warn_arity_mismatch must be a boolean")
            kwargs["warn_arity_mismatch"] = value

        config = cls(**kwargs)
        problems = config.validate()
        if problems:
            raise ConfigError("; ".join(problems))
        logger.debug("Loaded configuration %s", config)
        return config

    @classmethod
    def from_json_file(cls, path: Union[str, Path]) -> "AnalysisConfig":
        """Load a configuration from a JSON object stored in *path*."""
        p = Path(path)
        try:
            raw = json.loads(p.read_text(encoding="utf-8"))
        except OSError as exc:
            raise ConfigError(f"cannot read configuration {p}: {exc}") from exc
        except json.JSONDecodeError as exc:
            raise ConfigError(f"invalid JSON in {p}: {exc}") from exc
        if not isinstance(raw, dict):
            raise ConfigError(f"configuration {p} must contain a JSON object")
        return cls.from_mapping(raw)


def _coerce_entries(value: Any) -> Tuple[str, ...]:
    if isinstance(value, str):
        return (value,)
    if isinstance(value, (list, tuple)) and all(isinstance(v, str) for v in value):
        return tuple(value)
    raise ConfigError("entry_methods must be a string or a list of strings")


def _coerce_strategy(value: Any) -> WorklistStrategy:
    if isinstance(value, WorklistStrategy):
        return value
    try:
        return WorklistStrategy(str(value).lower())
    except ValueError:
        choices = ", ".join(s.value for s in WorklistStrategy)
        raise ConfigError(
            f"unknown worklist strategy {value!r} (expected one of: {choices})"
        ) from None


def _coerce_optional_int(name: str, value: Any) -> Optional[int]:
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int):
        raise ConfigError(f"{name} must be an integer or null")
    return value
