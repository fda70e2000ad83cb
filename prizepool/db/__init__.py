from .engine import get_sessionmaker, make_engine
from .transaction import atomic

__all__ = ["atomic", "get_sessionmaker", "make_engine"]
