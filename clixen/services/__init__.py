"""Domain services: entitlement-aware billing, routing and usage recording."""
