"""auth/ -- Authentication package for the issue tracker.

Credential storage, password hashing, the session token codec, and identity
resolution for the access gate.

Layer rule: auth/ imports only core/, stdlib, and third-party libraries.
It does NOT import from api/, web/, or tracker/.
api/ and web/ import from auth/, not the other way around.
"""
