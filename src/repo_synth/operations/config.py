"""Configuration for repo-synth."""

from dataclasses import dataclass, replace

from repo_synth.errors import SynthError
from repo_synth.operations.executor import GitExecutor


@dataclass(frozen=True, slots=True)
class SynthConfig:
    """Immutable engine settings."""

    patch_program: str = "patch"
    patch_fuzz: int = 3
    page_size: int = 500
    max_backfill_tips: int = 1000
    temp_stash_message: str = "repo-synth: local changes held during stash pop"


class SynthConfigManager:
    """Read setting overrides from git config.

    Keys live under ``synth.``; nothing is ever written back.
    """

    CONFIG_PREFIX = "synth."

    _KEYS = {
        "patchProgram": ("patch_program", str),
        "patchFuzz": ("patch_fuzz", int),
        "pageSize": ("page_size", int),
        "maxBackfillTips": ("max_backfill_tips", int),
    }

    def __init__(self, executor: GitExecutor):
        self.executor = executor

    def _get_config_key(self, name: str) -> str:
        return f"{self.CONFIG_PREFIX}{name}"

    def _parse_value(self, key: str, raw: str, kind: type) -> str | int:
        if kind is int:
            try:
                value = int(raw)
            except ValueError:
                raise SynthError(f"Invalid value for {key}: {raw!r} is not a number")
            if value < 0:
                raise SynthError(f"Invalid value for {key}: {value} is negative")
            return value
        if not raw:
            raise SynthError(f"Invalid value for {key}: empty")
        return raw

    def load(self, base: SynthConfig | None = None) -> SynthConfig:
        """Defaults (or ``base``) with any git config overrides applied."""
        config = base or SynthConfig()
        overrides = {}
        for name, (field_name, kind) in self._KEYS.items():
            key = self._get_config_key(name)
            raw = self.executor.get_config(key)
            if raw is None:
                continue
            overrides[field_name] = self._parse_value(key, raw, kind)
        return replace(config, **overrides)
