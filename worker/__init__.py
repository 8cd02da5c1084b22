"""Scheduled reminder worker for the service desk."""
