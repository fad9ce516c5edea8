# -*- coding: utf-8 -*-
# =================================================================================================
# auxilium/api/__init__.py
# =================================================================================================
# HTTP transport for the chat core.
#
#   auxilium/api/
#   ├── __init__.py         <- YOU ARE HERE
#   ├── schemas.py          <- Pydantic request/response models
#   ├── dependencies.py     <- FastAPI dependency injection
#   ├── exceptions.py       <- Domain error -> HTTP mapping
#   ├── middleware.py       <- Request ID, timing, logging, CORS
#   ├── main.py             <- create_app() and uvicorn entrypoint
#   └── routers/
#       ├── chat.py         <- Sessions, status, cleanup, system role
#       └── health.py       <- Health check
#
# The FastAPI app itself is not imported here; use auxilium.api.main.create_app.
# =================================================================================================
