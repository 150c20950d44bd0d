"""interfaces/ — Telegram command handlers."""
