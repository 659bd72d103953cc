"""Royalty Ledger: receipts, payout splitting and payout reconciliation."""
