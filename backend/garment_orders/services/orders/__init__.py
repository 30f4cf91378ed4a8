"""Order pipeline: code sequencing, status ledger, totals, item state machine and cloning."""
