"""Pure domain core: ledger rules, alert derivation, compliance, DTOs, clock."""
