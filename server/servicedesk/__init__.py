"""Service desk backend: customers, machines, service records, points and notifications."""

__version__ = "1.0.0"
