"""
Task subsystem.

Components:
- task_models.py: data structures (TaskRow, Task)
- task_store.py: SQLite-backed authoritative task table
- task_service.py: identity-aware create/list/toggle/delete
- dispatcher.py: tracks mutations from pending to confirmed/failed, bumps version counters
- view_model.py: merges the authoritative list with pending creates for display
"""
