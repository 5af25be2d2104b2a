"""SlotKing: collect votes on candidate meeting slots and surface the best ones."""
