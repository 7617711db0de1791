"""Target and fund-sharing ledger service."""
