"""
Configuration loader for ``.smtblocks.yml``.

Defaults work without a config file; a repository can override the solver
timeout and the log level of the comparison core.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

import yaml

CONFIG_NAMES = (".smtblocks.yml", ".smtblocks.yaml")


@dataclass
class SmtConfig:
    """
    Settings of the SMT-based snippet comparison.

    smt_timeout: solver time budget of one top-level comparison, in whole
        seconds. 0 or a negative value means unlimited.
    """
    smt_timeout: int = 0
    log_level: str = "WARNING"

    @property
    def has_timeout(self) -> bool:
        return self.smt_timeout > 0

    @classmethod
    def load(cls, repo_root: Path) -> "SmtConfig":
        """Load config from .smtblocks.yml, falling back to defaults."""
        config_path: Optional[Path] = None
        for name in CONFIG_NAMES:
            candidate = Path(repo_root) / name
            if candidate.exists():
                config_path = candidate
                break
        if config_path is None:
            return cls()

        with open(config_path) as f:
            raw = yaml.safe_load(f) or {}

        return cls._from_dict(raw)

    @classmethod
    def _from_dict(cls, raw: dict[str, Any]) -> "SmtConfig":
        smt_raw = raw.get("smt") or raw
        return cls(
            smt_timeout=int(smt_raw.get("smt-timeout", smt_raw.get("smt_timeout", 0))),
            log_level=str(smt_raw.get("log-level", smt_raw.get("log_level", "WARNING"))).upper(),
        )

    def to_yaml(self) -> str:
        """Serialise to YAML string."""
        lines = [
            "# .smtblocks.yml - SMT snippet comparison configuration",
            "",
            "smt:",
            f"  smt-timeout: {self.smt_timeout}",
            f"  log-level: {self.log_level}",
        ]
        return "\n".join(lines) + "\n"

    def configure_logging(self) -> None:
        """Apply `log_level` to the package logger."""
        logging.getLogger("smtblocks").setLevel(self.log_level)
