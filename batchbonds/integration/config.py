"""
Engine configuration.

Defaults match the module account names used by the bond token system. Every
tunable can be overridden from the environment via ``EngineConfig.from_env``.
"""

from __future__ import annotations

import os
from dataclasses import dataclass

from ..core.dec import MAX_APPROX_ROOT_ITERATIONS
from ..state.requests import DO_NOT_MODIFY


ENV_PREFIX = "BATCHBONDS_"


def _env_int(name: str, default: int, *, lo: int, hi: int) -> int:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return int(default)
    try:
        v = int(raw.strip())
    except ValueError:
        return int(default)
    if v < lo:
        return int(lo)
    if v > hi:
        return int(hi)
    return v


def _env_str(name: str, default: str) -> str:
    raw = os.environ.get(name)
    if raw is None:
        return default
    v = raw.strip()
    return v if v else default


@dataclass(frozen=True)
class EngineConfig:
    # Module accounts:
    # - sold bond tokens are moved here and burned on admission
    # - buy and swap escrow sits here until the batch closes
    mint_burn_account: str = "bonds_mint_burn_account"
    batches_intermediary_account: str = "batches_intermediary_account"

    # Edit requests use this value for "keep the current value".
    do_not_modify: str = DO_NOT_MODIFY

    # Newton iteration cap for Augmented curve roots.
    max_approx_root_iterations: int = MAX_APPROX_ROOT_ITERATIONS

    # Batch length for bonds created without one.
    default_batch_blocks: int = 1

    def __post_init__(self) -> None:
        for name in ("mint_burn_account", "batches_intermediary_account", "do_not_modify"):
            v = getattr(self, name)
            if not isinstance(v, str) or not v:
                raise ValueError(f"{name} must be a non-empty string")
        if self.mint_burn_account == self.batches_intermediary_account:
            raise ValueError("mint_burn_account and batches_intermediary_account must differ")
        for name in ("max_approx_root_iterations", "default_batch_blocks"):
            v = getattr(self, name)
            if not isinstance(v, int) or isinstance(v, bool) or v <= 0:
                raise ValueError(f"{name} must be a positive int")

    @classmethod
    def from_env(cls) -> "EngineConfig":
        d = cls()
        return cls(
            mint_burn_account=_env_str(ENV_PREFIX + "MINT_BURN_ACCOUNT", d.mint_burn_account),
            batches_intermediary_account=_env_str(
                ENV_PREFIX + "BATCHES_INTERMEDIARY_ACCOUNT", d.batches_intermediary_account
            ),
            do_not_modify=_env_str(ENV_PREFIX + "DO_NOT_MODIFY", d.do_not_modify),
            max_approx_root_iterations=_env_int(
                ENV_PREFIX + "MAX_APPROX_ROOT_ITERATIONS", d.max_approx_root_iterations, lo=1, hi=10_000
            ),
            default_batch_blocks=_env_int(
                ENV_PREFIX + "DEFAULT_BATCH_BLOCKS", d.default_batch_blocks, lo=1, hi=1_000_000
            ),
        )
