from decimal import Decimal

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # --- STORAGE ---
    STORE_PATH: str = "data/matchledger.json"

    # --- DISPLAY ---
    CURRENCY: str = "GBP"

    # --- BALANCES ---
    # clamp | allow | reject
    OVERDRAFT_POLICY: str = "clamp"
    # Percent, used when an exchange is added without a commission
    DEFAULT_COMMISSION: Decimal = Decimal("0")

    model_config = SettingsConfigDict(env_file=".env", env_prefix="MATCHLEDGER_", extra="ignore")

    @field_validator("OVERDRAFT_POLICY", mode="before")
    @classmethod
    def _normalize_policy(cls, v):
        if v is None or (isinstance(v, str) and v.strip() == ""):
            return "clamp"
        value = str(v).strip().lower()
        if value not in ("clamp", "allow", "reject"):
            raise ValueError(f"OVERDRAFT_POLICY must be clamp, allow or reject, got {v!r}")
        return value

    @field_validator("DEFAULT_COMMISSION")
    @classmethod
    def _commission_range(cls, v):
        if not (0 <= v < 100):
            raise ValueError(f"DEFAULT_COMMISSION must be in [0, 100), got {v}")
        return v


settings = Settings()
