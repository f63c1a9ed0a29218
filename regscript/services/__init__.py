"""
Services the engine sequences calls to: wallets, transactions, multisig coordination.
"""

from regscript.services.coordinator import CoordinatorService
from regscript.services.transaction import TransactionNotSignedError, TransactionService
from regscript.services.wallet import WalletService

__all__ = [
    "CoordinatorService",
    "TransactionNotSignedError",
    "TransactionService",
    "WalletService",
]
