"""Persistence for transactions, categories and balances."""

from statement_ledger.storage.base import InsertResult, StorageError, TransactionStore
from statement_ledger.storage.sql_store import SqlTransactionStore

__all__ = ["InsertResult", "StorageError", "TransactionStore", "SqlTransactionStore"]
