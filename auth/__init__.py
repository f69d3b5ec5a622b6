"""auth/ -- Accounts, passwords, and cookie-bound sessions for the Cogito API.

Layer rule: auth/ imports only stdlib + third-party libraries + core/.
It does NOT import from api/ or conversations/.
api/ imports from auth/, not the other way around.
"""
