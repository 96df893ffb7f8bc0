"""Type aliases used across RoleCrew."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

ProgressCallback = Callable[[Any, int], None]  # (step, chars received so far)
