"""tasks/ -- Task assignment, status workflow and comments for TaskDesk.

Layer rule: tasks/ imports from auth/ and core/ only. It does NOT import
from api/ or notes/.
"""
