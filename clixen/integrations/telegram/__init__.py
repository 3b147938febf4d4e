"""Telegram Bot API integration."""

from clixen.integrations.telegram.client import TelegramClient

__all__ = ["TelegramClient"]
