from .sql import drop_object_statements, drop_statements, init_statements
from .state import State

__all__ = ["State", "drop_object_statements", "drop_statements", "init_statements"]
