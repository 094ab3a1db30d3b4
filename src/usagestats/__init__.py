"""usagestats: anonymized usage analytics for a profiling server.

The package periodically snapshots runtime and application counters,
reconciles them against the last persisted snapshot so additive counters
survive restarts, and uploads the result to a collector on a best-effort basis.
"""

from __future__ import annotations

__all__ = ["__version__"]
__version__ = "0.4.0"
