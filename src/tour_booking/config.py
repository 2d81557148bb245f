"""
Настройки движка бронирования.

Значения читаются из переменных окружения с префиксом TOUR_BOOKING_
и из файла .env.
"""

from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="TOUR_BOOKING_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    currency: str = Field(default="USD", max_length=3)
    max_booking_days: int = Field(default=30, gt=0)
    reject_past_start_dates: bool = True
    # Через сколько минут неоплаченное бронирование можно отменить
    payment_grace_minutes: int = Field(default=30, gt=0)
    lock_timeout_seconds: float = Field(default=5.0, gt=0)

    # None: хранилища в памяти, путь: JSON-файлы в этом каталоге
    data_dir: Optional[str] = None
    seed_sample_data: bool = True
    log_level: str = "INFO"

    host: str = "127.0.0.1"
    port: int = 8000


@lru_cache
def get_settings() -> Settings:
    return Settings()
