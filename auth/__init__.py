"""auth/ -- Credential and session lifecycle for tokengate.

Layer rule: auth/ imports only stdlib + third-party libraries, plus core/ for
configuration types. It does NOT import from api/. api/ imports from auth/,
not the other way around. Only auth/dependencies.py may import fastapi.
"""
