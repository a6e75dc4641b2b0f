from .bootstrap import ensure_state_root
from .store import BoardStore, BoardTx

__all__ = ["BoardStore", "BoardTx", "ensure_state_root"]
