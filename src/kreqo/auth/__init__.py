"""
Identity subsystem.

Components:
- auth_models.py: Identity, GUEST display identity, anonymous owner sentinel
- user_store.py: SQLite-backed users + sessions
- gateway.py: AuthGateway (signup/login/logout, current_identity, resolve_identity)
"""
