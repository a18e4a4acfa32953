"""tracker/ -- Issues and comments: domain models, request schemas, persistence,
and the authorization rules applied before every mutation.

Layer rule: tracker/ may import from core/ and auth/ (models and UserStore).
It does NOT import from api/ or web/.
"""
