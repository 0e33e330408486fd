"""hydrator

State persistence and hydration.

Components keep their state in memory. This package makes sure it survives
the process: hashed, optionally compressed, optionally encrypted, and restored
as a whole document on the next start.
"""

from __future__ import annotations

__all__ = ["__version__"]

__version__ = "0.1.0"
