"""Inbox triage: classify, label, auto-reply and report on incoming email."""

__version__ = "0.1.0"
