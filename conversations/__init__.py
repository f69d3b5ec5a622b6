"""conversations/ -- User-owned conversation records and the ownership guard.

Layer rule: conversations/ imports only stdlib + third-party libraries + core/
and auth.models. It does NOT import from api/.
"""
