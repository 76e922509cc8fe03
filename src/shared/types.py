"""Common type definitions."""

from typing import Dict, Union
from pathlib import Path

# Type alias for paths
PathLike = Union[str, Path]

# One override table row: column name -> raw cell text
OverrideRow = Dict[str, str]
