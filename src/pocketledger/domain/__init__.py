"""Domain layer for pocketledger: entities, accounting rules and services."""
