"""auth/ -- Authentication and session package for Cinebase.

Layer rule: auth/ imports stdlib, third-party libraries and core/ (for the
Settings type only). It does NOT import from api/.
api/ imports from auth/, not the other way around.
"""
