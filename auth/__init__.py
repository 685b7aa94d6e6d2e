"""auth/ -- Credential lifecycle for WinkLink: password hashing, login, session tokens.

Layer rule: auth/ imports only stdlib, third-party libraries and core/.
It does NOT import from api/ at all, and references devices/ for typing only.
api/ imports from auth/, not the other way around.
"""
