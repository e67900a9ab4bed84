"""Live sports-auction backend: auctions, lots, bids, settlement and team budgets."""
