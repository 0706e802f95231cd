"""
Engine configuration -- dataclasses with environment overrides.

Defaults work out of the box. Every field can be overridden with a
WORKLOAD_ARBITER_* environment variable; a malformed value is logged and
the default kept.

    config = EngineConfig.from_env()
    config.orchestrator.per_agent_timeout   # WORKLOAD_ARBITER_AGENT_TIMEOUT
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

from workload_arbiter.storage.schema import DEFAULT_DB_PATH

logger = logging.getLogger(__name__)

ENV_PREFIX = "WORKLOAD_ARBITER_"


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(ENV_PREFIX + name, "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning(f"[Config] Ignoring {ENV_PREFIX}{name}={raw!r}, using {default}")
        return default


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(ENV_PREFIX + name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning(f"[Config] Ignoring {ENV_PREFIX}{name}={raw!r}, using {default}")
        return default


def _env_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(ENV_PREFIX + name, "").strip().lower()
    if not raw:
        return default
    return raw in ("true", "1", "yes")


def _env_path(name: str, default: Path | None) -> Path | None:
    raw = os.environ.get(ENV_PREFIX + name, "").strip()
    return Path(raw) if raw else default


# =============================================================================
# SECTIONS
# =============================================================================


@dataclass
class OrchestratorConfig:
    per_agent_timeout: float = 2.0
    max_consecutive_timeouts: int = 3


@dataclass
class ArbiterConfig:
    min_confidence: float = 0.3
    # added to the priority of agents the matched recipe lists as required
    required_agent_boost: float = 0.1


@dataclass
class ApplierConfig:
    actuator_timeout: float = 5.0


@dataclass
class LearningConfig:
    alpha: float = 0.15
    delta: float = 1.0


@dataclass
class PollerConfig:
    active_interval: float = 2.0
    background_interval: float = 10.0


@dataclass
class EngineConfig:
    """Top-level configuration for the control loop."""

    orchestrator: OrchestratorConfig = field(default_factory=OrchestratorConfig)
    arbiter: ArbiterConfig = field(default_factory=ArbiterConfig)
    applier: ApplierConfig = field(default_factory=ApplierConfig)
    learning: LearningConfig = field(default_factory=LearningConfig)
    poller: PollerConfig = field(default_factory=PollerConfig)
    db_path: Path = DEFAULT_DB_PATH
    catalog_path: Path | None = None  # None = built-in catalog
    revert_on_switch: bool = True

    @classmethod
    def from_env(cls) -> "EngineConfig":
        defaults = cls()
        return cls(
            orchestrator=OrchestratorConfig(
                per_agent_timeout=_env_float(
                    "AGENT_TIMEOUT", defaults.orchestrator.per_agent_timeout
                ),
                max_consecutive_timeouts=_env_int(
                    "MAX_TIMEOUTS", defaults.orchestrator.max_consecutive_timeouts
                ),
            ),
            arbiter=ArbiterConfig(
                min_confidence=_env_float("MIN_CONFIDENCE", defaults.arbiter.min_confidence),
                required_agent_boost=_env_float(
                    "REQUIRED_AGENT_BOOST", defaults.arbiter.required_agent_boost
                ),
            ),
            applier=ApplierConfig(
                actuator_timeout=_env_float(
                    "ACTUATOR_TIMEOUT", defaults.applier.actuator_timeout
                ),
            ),
            learning=LearningConfig(
                alpha=_env_float("LEARNING_ALPHA", defaults.learning.alpha),
                delta=_env_float("LEARNING_DELTA", defaults.learning.delta),
            ),
            poller=PollerConfig(
                active_interval=_env_float(
                    "ACTIVE_INTERVAL", defaults.poller.active_interval
                ),
                background_interval=_env_float(
                    "BACKGROUND_INTERVAL", defaults.poller.background_interval
                ),
            ),
            db_path=_env_path("DB_PATH", defaults.db_path),
            catalog_path=_env_path("CATALOG_PATH", defaults.catalog_path),
            revert_on_switch=_env_bool("REVERT_ON_SWITCH", defaults.revert_on_switch),
        )
