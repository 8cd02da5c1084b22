"""Scheduled jobs run by the worker."""
