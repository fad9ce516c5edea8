# -*- coding: utf-8 -*-
# =================================================================================================
# auxilium/__init__.py
# =================================================================================================
# Multi-session chat server over a single serial inference engine.
#
#   auxilium/
#   ├── errors.py       <- Domain exception hierarchy
#   ├── config.py       <- Settings (env + .env + YAML)
#   ├── engine.py       <- Inference engine interface and backends
#   ├── sessions.py     <- Session store
#   ├── scheduler.py    <- Single execution lane (global FIFO)
#   ├── reaper.py       <- Inactivity sweep
#   ├── manager.py      <- ChatManager tying it all together
#   └── api/            <- FastAPI transport
#
# =================================================================================================

__version__ = "1.0.0"

__all__ = [
    "__version__",
]
