from .session import Database
from .tx import transactional

__all__ = ["Database", "transactional"]
