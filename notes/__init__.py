"""notes/ -- Personal notes, visible only to the identity that wrote them.

Layer rule: notes/ imports from core/ and auth/ (for the identities table)
only. It does NOT import from api/ or tasks/.
"""
