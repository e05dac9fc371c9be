"""Slack slash-command authorization and routing."""
