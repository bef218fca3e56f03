"""Triage decision pipeline: decode, classify, label, respond."""
