"""BGME Battle Themes - Core application modules.

Provides:
- Music registry (discovery, BGM ID allocation, incremental builds, pruning)
- Persisted registry state (music.json + version.txt)
- Game context table
- Transcode cache index (SQLite)
- Core utilities: atomic_io, hashing, paths, failpoints
"""

__version__ = "0.1.0"
