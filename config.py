"""Configuration management with environment variable support."""

import os
import secrets
from dataclasses import dataclass, field
from decimal import Decimal

from velvet.rules import TableRules


def _parse_cors_origins() -> list[str]:
    """Parse CORS_ORIGINS environment variable."""
    origins = os.getenv("CORS_ORIGINS", "http://localhost:8000")
    return [o.strip() for o in origins.split(",") if o.strip()]


def _parse_chip_values() -> tuple[int, ...]:
    """Parse CHIP_VALUES environment variable, e.g. ``5,25,100,500``."""
    raw = os.getenv("CHIP_VALUES", "5,25,100,500")
    return tuple(int(v) for v in raw.split(",") if v.strip())


@dataclass(frozen=True)
class CORSConfig:
    """CORS configuration."""

    allowed_origins: list[str] = field(default_factory=_parse_cors_origins)
    allow_credentials: bool = True
    allow_methods: list[str] = field(default_factory=lambda: ["*"])
    allow_headers: list[str] = field(default_factory=lambda: ["*"])


@dataclass(frozen=True)
class RateLimitConfig:
    """Rate limiting configuration."""

    enabled: bool = field(
        default_factory=lambda: os.getenv("RATE_LIMIT_ENABLED", "true").lower() == "true"
    )
    requests_per_minute: int = field(
        default_factory=lambda: int(os.getenv("RATE_LIMIT_RPM", "60"))
    )


@dataclass(frozen=True)
class SecurityConfig:
    """Security configuration."""

    secret_key: str = field(
        default_factory=lambda: os.getenv("SECRET_KEY", secrets.token_urlsafe(32))
    )


@dataclass(frozen=True)
class TableConfig:
    """Default table configuration."""

    initial_balance: int = field(
        default_factory=lambda: int(os.getenv("INITIAL_BALANCE", "2000"))
    )
    chip_values: tuple[int, ...] = field(default_factory=_parse_chip_values)
    blackjack_payout: str = field(
        default_factory=lambda: os.getenv("BLACKJACK_PAYOUT", "1.5")
    )
    refresh_threshold: int = field(
        default_factory=lambda: int(os.getenv("DECK_REFRESH_THRESHOLD", "18"))
    )
    auto_advance_delay_ms: int = field(
        default_factory=lambda: int(os.getenv("AUTO_ADVANCE_DELAY_MS", "2200"))
    )

    def to_rules(self) -> TableRules:
        """Build the engine's rules from this configuration."""
        return TableRules(
            initial_balance=Decimal(self.initial_balance),
            chip_values=self.chip_values,
            blackjack_payout=Decimal(self.blackjack_payout),
            refresh_threshold=self.refresh_threshold,
            auto_advance_delay=self.auto_advance_delay_ms / 1000,
        )


@dataclass(frozen=True)
class AppConfig:
    """Application configuration."""

    debug: bool = field(default_factory=lambda: os.getenv("DEBUG", "false").lower() == "true")
    host: str = field(default_factory=lambda: os.getenv("HOST", "0.0.0.0"))
    port: int = field(default_factory=lambda: int(os.getenv("PORT", "8000")))
    log_level: str = field(default_factory=lambda: os.getenv("LOG_LEVEL", "INFO").upper())
    session_ttl: int = 3600  # Session timeout in seconds

    table: TableConfig = field(default_factory=TableConfig)
    cors: CORSConfig = field(default_factory=CORSConfig)
    rate_limit: RateLimitConfig = field(default_factory=RateLimitConfig)
    security: SecurityConfig = field(default_factory=SecurityConfig)


# Global configuration instance
config = AppConfig()
