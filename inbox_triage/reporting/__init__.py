"""Periodic summary reports: sinks, reporter and scheduler."""
