"""Local change notifications."""

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class ChangeKind(Enum):
    """Kind of local change."""

    CREATED = "created"
    DELETED = "deleted"


@dataclass(frozen=True)
class ChangeEvent:
    """A file appeared in or disappeared from the watched directory."""

    kind: ChangeKind
    full_path: str
    """Absolute path of the changed entry"""

    name: Optional[str]
    """Name relative to the watched directory; may be empty"""

    is_directory: bool = False
