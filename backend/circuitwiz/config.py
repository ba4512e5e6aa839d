from pydantic_settings import BaseSettings
from functools import lru_cache
from pydantic import Field


class Settings(BaseSettings):
    app_name: str = "CircuitWiz"
    debug: bool = True
    env: str = "development"
    log_level: str = "INFO"

    # Server
    backend_host: str = "0.0.0.0"
    backend_port: int = 8000
    cors_origins: list[str] = Field(
        default_factory=lambda: [
            "http://localhost:5173",
            "http://localhost:5174",
            "http://localhost:3000",
        ]
    )

    # Board limits (requests beyond these are rejected, not simulated)
    max_grid_width: int = 200
    max_grid_height: int = 200
    max_wires: int = 2000

    # Electrical validation thresholds
    led_max_current: float = 0.02  # A
    led_max_voltage: float = 3.3  # V
    resistor_power_rating: float = 0.25  # W
    battery_max_current: float = 1.0  # A
    power_supply_max_current: float = 2.0  # A

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        env_prefix = "CIRCUITWIZ_"


@lru_cache()
def get_settings() -> Settings:
    return Settings()
