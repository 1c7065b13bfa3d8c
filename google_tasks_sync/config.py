"""Загрузка и валидация конфигурации приложения."""
from __future__ import annotations

import os
from pathlib import Path
from typing import Mapping, Optional

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

DEFAULT_TOKEN_URI = "https://oauth2.googleapis.com/token"
DEFAULT_BASE_URL = "https://tasks.googleapis.com/tasks/v1"


class AccountCredentials(BaseModel):
    """Настройки подключения к одному аккаунту Google Tasks."""

    label: str = Field("account", description="Имя аккаунта для логов")
    client_id: str = Field(..., description="OAuth client id приложения Google")
    client_secret: str = Field(..., description="OAuth client secret приложения Google")
    refresh_token: str = Field(..., description="Refresh token пользователя")
    token_uri: str = Field(DEFAULT_TOKEN_URI, description="Адрес выдачи access token")
    base_url: str = Field(DEFAULT_BASE_URL, description="Базовый URL Google Tasks API")


class RetryOptions(BaseModel):
    """Повторы запросов при временных ошибках."""

    max_retries: int = Field(5, ge=0, description="Сколько раз повторять запрос после временной ошибки")
    initial_delay: float = Field(1.0, ge=0, description="Первая пауза перед повтором, секунды (далее удваивается)")


class SyncOptions(BaseModel):
    """Параметры синхронизации."""

    task_list_name: Optional[str] = Field(
        None,
        description="Название списка задач; если не найден в обоих аккаунтах, берётся первый список",
    )
    page_size: int = Field(100, ge=1, le=100, description="Размер страницы при выгрузке задач")
    page_delay: float = Field(0.2, ge=0, description="Пауза между страницами, секунды")
    dry_run: bool = Field(False, description="Если True, изменения в аккаунтах не выполняются")
    show_progress: bool = Field(False, description="Показывать прогресс применения операций")


class AppConfig(BaseModel):
    """Корневая конфигурация приложения."""

    account_a: AccountCredentials
    account_b: AccountCredentials
    sync: SyncOptions = Field(default_factory=SyncOptions)
    retry: RetryOptions = Field(default_factory=RetryOptions)
    state_db: Path = Field(Path(".sync_state.sqlite"), description="Путь к SQLite-базе соответствий")

    @field_validator("state_db", mode="before")
    @classmethod
    def _state_db_path(cls, value: Path | str) -> Path:
        return Path(value)

    @classmethod
    def load(cls, path: Path | str) -> "AppConfig":
        """Загружает конфигурацию из YAML-файла."""
        path = Path(path)
        raw = yaml.safe_load(path.read_text(encoding="utf-8"))
        try:
            return cls.model_validate(raw)
        except ValidationError as exc:
            raise ValueError(f"Конфигурация {path} некорректна: {exc}") from exc

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "AppConfig":
        """Собирает конфигурацию из переменных окружения.

        Используются ``GOOGLE_CLIENT_ID``, ``GOOGLE_CLIENT_SECRET``,
        ``ACCOUNT_A_REFRESH_TOKEN``, ``ACCOUNT_B_REFRESH_TOKEN`` и,
        необязательно, ``TASK_LIST_NAME`` и ``SYNC_STATE_DB``.
        """
        env = os.environ if environ is None else environ
        client = {
            "client_id": env.get("GOOGLE_CLIENT_ID"),
            "client_secret": env.get("GOOGLE_CLIENT_SECRET"),
        }
        raw = {
            "account_a": {"label": "A", "refresh_token": env.get("ACCOUNT_A_REFRESH_TOKEN"), **client},
            "account_b": {"label": "B", "refresh_token": env.get("ACCOUNT_B_REFRESH_TOKEN"), **client},
            "sync": {"task_list_name": env.get("TASK_LIST_NAME") or None},
        }
        if env.get("SYNC_STATE_DB"):
            raw["state_db"] = env["SYNC_STATE_DB"]
        try:
            return cls.model_validate(raw)
        except ValidationError as exc:
            raise ValueError(f"Переменные окружения заданы некорректно: {exc}") from exc

    def ensure_runtime_dirs(self) -> None:
        """Создаёт недостающие служебные каталоги."""
        self.state_db.parent.mkdir(parents=True, exist_ok=True)


__all__ = ["AppConfig", "AccountCredentials", "RetryOptions", "SyncOptions"]
