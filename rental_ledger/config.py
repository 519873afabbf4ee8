"""Configuration management for rental_ledger."""

from __future__ import annotations
from dataclasses import dataclass
from typing import Optional, Mapping

from .core import (
    BPS_DENOMINATOR,
    DEFAULT_MAX_DESCRIPTION_LENGTH,
    DEFAULT_MAX_TITLE_LENGTH,
    DEFAULT_PERIOD_LENGTH,
    ESCROW_WALLET,
    MAX_UINT,
    ConfigurationError,
)
from .logging_config import setup_logging


@dataclass(frozen=True)
class RentalConfig:
    """
    Tunable policy knobs for the protocol.

    Attributes:
        period_length: Blocks per billing period.
        max_title_length: Upper bound on property titles.
        max_description_length: Upper bound on property descriptions.
        max_amount: Upper bound on rent and deposit amounts.
        start_grace_blocks: Blocks after start_block during which an agreement
            may still be created.
        prepayment_blocks: Blocks before a period opens during which its rent
            is already accepted.
        allow_self_rental: Whether an owner may rent their own property.
        deposit_policy: Name of the deposit disposition policy used on
            termination (see policy.POLICIES).
        early_exit_penalty_bps: Share of the deposit forfeited when a tenant
            terminates mid-term under the standard policy.
        escrow_wallet: Funds wallet holding deposits.
        log_level: Level applied by configure_logging().
    """

    period_length: int = DEFAULT_PERIOD_LENGTH
    max_title_length: int = DEFAULT_MAX_TITLE_LENGTH
    max_description_length: int = DEFAULT_MAX_DESCRIPTION_LENGTH
    max_amount: int = MAX_UINT
    start_grace_blocks: int = 0
    prepayment_blocks: int = 0
    allow_self_rental: bool = False
    deposit_policy: str = "standard"
    early_exit_penalty_bps: int = 0
    escrow_wallet: str = ESCROW_WALLET
    log_level: str = "INFO"

    def __post_init__(self):
        if self.period_length <= 0:
            raise ConfigurationError(f"period_length must be positive, got {self.period_length}")
        if self.max_title_length <= 0 or self.max_description_length <= 0:
            raise ConfigurationError("text length bounds must be positive")
        if self.max_amount < 0:
            raise ConfigurationError(f"max_amount must be non-negative, got {self.max_amount}")
        if self.start_grace_blocks < 0:
            raise ConfigurationError(f"start_grace_blocks must be non-negative, got {self.start_grace_blocks}")
        if self.prepayment_blocks < 0:
            raise ConfigurationError(f"prepayment_blocks must be non-negative, got {self.prepayment_blocks}")
        if not 0 <= self.early_exit_penalty_bps <= BPS_DENOMINATOR:
            raise ConfigurationError(
                f"early_exit_penalty_bps must be within 0..{BPS_DENOMINATOR}, "
                f"got {self.early_exit_penalty_bps}"
            )
        if not self.escrow_wallet or not self.escrow_wallet.strip():
            raise ConfigurationError("escrow_wallet cannot be empty")

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "RentalConfig":
        """Create config from RENTAL_* environment variables."""
        import os

        env = os.environ if environ is None else environ

        def _int(name: str, default: int) -> int:
            raw = env.get(name)
            if raw is None or raw == "":
                return default
            try:
                return int(raw)
            except ValueError:
                raise ConfigurationError(f"{name} must be an integer, got {raw!r}") from None

        return cls(
            period_length=_int("RENTAL_PERIOD_LENGTH", DEFAULT_PERIOD_LENGTH),
            max_title_length=_int("RENTAL_MAX_TITLE_LENGTH", DEFAULT_MAX_TITLE_LENGTH),
            max_description_length=_int("RENTAL_MAX_DESCRIPTION_LENGTH", DEFAULT_MAX_DESCRIPTION_LENGTH),
            max_amount=_int("RENTAL_MAX_AMOUNT", MAX_UINT),
            start_grace_blocks=_int("RENTAL_START_GRACE_BLOCKS", 0),
            prepayment_blocks=_int("RENTAL_PREPAYMENT_BLOCKS", 0),
            allow_self_rental=env.get("RENTAL_ALLOW_SELF_RENTAL", "false").lower() == "true",
            deposit_policy=env.get("RENTAL_DEPOSIT_POLICY", "standard"),
            early_exit_penalty_bps=_int("RENTAL_EARLY_EXIT_PENALTY_BPS", 0),
            escrow_wallet=env.get("RENTAL_ESCROW_WALLET", ESCROW_WALLET),
            log_level=env.get("RENTAL_LOG_LEVEL", "INFO"),
        )

    def configure_logging(self, format_type: str = "standard") -> None:
        """Install the package log handler at this config's log_level."""
        setup_logging(self.log_level, format_type)
