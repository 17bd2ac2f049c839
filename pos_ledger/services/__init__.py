"""Sale transaction ledger services."""
