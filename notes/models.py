"""
notes/models.py -- Domain dataclass for personal notes.
"""

from dataclasses import dataclass
from typing import Optional


@dataclass
class Note:
    title: str
    owner_id: str
    description: Optional[str] = None
    id: Optional[int] = None
    date_created: str = ""
