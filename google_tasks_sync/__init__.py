"""Двусторонняя синхронизация задач между двумя аккаунтами Google Tasks."""

__version__ = "0.1.0"
