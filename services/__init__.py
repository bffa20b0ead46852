"""Business operations for the sweet shop: catalog, inventory, ledger and purchases."""
