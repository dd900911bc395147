"""Shared dependencies for route modules."""
import time

from fastapi import Request
from slowapi import Limiter
from slowapi.util import get_remote_address

from battle.config import AppConfig
from battle.engine import BattleEngine

# Shared limiter instance
limiter = Limiter(key_func=get_remote_address)

# Track startup time for uptime calculation
START_TIME = time.time()


def get_engine(request: Request) -> BattleEngine:
    return request.app.state.engine


def get_config(request: Request) -> AppConfig:
    return request.app.state.config
