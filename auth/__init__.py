"""auth/ -- Authentication and authorization package for the knowledge base.

Layer rule: auth/ imports only stdlib, third-party libraries, and core/.
It does NOT import from api/ or kb/.
api/ and kb/ import from auth/, not the other way around.
"""
