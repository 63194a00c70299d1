"""Transaction storage backends.

Only an in-memory backend ships: correlation state is per process and is
not expected to survive a restart.
"""

from beckn_bap.state.stores.memory import InMemoryTransactionRepository

__all__ = ["InMemoryTransactionRepository"]
