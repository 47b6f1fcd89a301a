"""Tests for bootstrap wiring."""
from restock_monitor import config, main
from restock_monitor.notifier import DiscordWebhookChannel, LoggingChannel


def test_build_channel_logs_only_without_webhook(monkeypatch):
    monkeypatch.setattr(config, "DISCORD_WEBHOOK_URL", None)
    channel = main.build_channel()
    assert [type(c) for c in channel.channels] == [LoggingChannel]


def test_build_channel_adds_discord(monkeypatch):
    monkeypatch.setattr(config, "DISCORD_WEBHOOK_URL", "https://discord.test/webhook")
    channel = main.build_channel()
    assert isinstance(channel.channels[1], DiscordWebhookChannel)
    channel.channels[1].close()
