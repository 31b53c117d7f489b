"""auth/ -- Credential and token lifecycle for the Storm backend.

Password hashing, session-token issuance and verification, the password-reset
token lifecycle, and the request gate.

Layer rule: auth/ imports only stdlib, third-party libraries, and core/.
It does NOT import from api/, bootstrap/, or contact/.
api/ imports from auth/, not the other way around.
"""
