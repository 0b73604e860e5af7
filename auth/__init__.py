"""auth/ -- Authentication and authorization package for TaskDesk.

Layer rule: auth/ imports only stdlib, third-party libraries and core/.
It does NOT import from api/, tasks/, or notes/.
api/ and tasks/ import from auth/, not the other way around.
"""
