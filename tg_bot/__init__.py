"""Telegram bot for course admins: lab configuration and score overrides."""
