import os
from dataclasses import dataclass

DB_PATH = "data/storefront.sqlite"


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError as e:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from e


@dataclass(frozen=True)
class Settings:
    backend: str = "sqlite"  # "sqlite" or "memory"
    db_path: str = DB_PATH
    low_stock_threshold: int = 5
    free_shipping_min: int = 5000  # minor units
    shipping_fee: int = 499

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            backend=os.getenv("STOREFRONT_BACKEND", "sqlite").strip().lower(),
            db_path=os.getenv("STOREFRONT_DB_PATH", DB_PATH),
            low_stock_threshold=_int_env("STOREFRONT_LOW_STOCK", 5),
            free_shipping_min=_int_env("STOREFRONT_FREE_SHIPPING_MIN", 5000),
            shipping_fee=_int_env("STOREFRONT_SHIPPING_FEE", 499),
        )
