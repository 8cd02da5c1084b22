"""
Service layer for the service desk.

Each module holds the operations for one entity as module-level async
functions taking the session first; notification fan-out lives on
NotificationDispatcher.
"""
