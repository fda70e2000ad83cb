from .base import Base

# import models so Alembic/autoloaders can discover mappers
from .prize_token import PrizeToken  # noqa: F401
from .winner import Winner  # noqa: F401

__all__ = [
    "Base",
    "PrizeToken",
    "Winner",
]
