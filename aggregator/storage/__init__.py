from .ledger import SqliteLedger
from .r2 import R2Stager

__all__ = ["SqliteLedger", "R2Stager"]
