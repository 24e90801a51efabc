"""Shared-expense balances, debt simplification and the settlement ledger."""
