# -*- coding: utf-8 -*-
# API routers: chat (sessions, status, cleanup, system role) and health.
