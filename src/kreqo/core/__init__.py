"""
Core plumbing shared by every subsystem.

Components:
- errors.py: error taxonomy (AuthUnavailable, NotFound, StoreError, ValidationError, PermissionDenied)
- ports.py: Protocols the task pipeline depends on
- state.py: AppState, the runtime composition object
"""
