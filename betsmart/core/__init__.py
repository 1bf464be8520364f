"""Core mathematics and registries for the BetSmart engine.

This package contains pure, sport-agnostic building blocks:

- ``odds_math``        — odds conversion, fair pricing, edge
- ``kelly``            — Kelly criterion sizing and bankroll simulation
- ``arbitrage``        — cross-book arbitrage percentage and stake split
- ``scenario_catalog`` — named betting scenarios and their criteria
- ``interfaces``       — DTOs and ABCs for swappable collaborators
- ``errors``           — typed error hierarchy

Nothing in this package imports from ``betsmart.services`` or ``betsmart.models``.
All modules are side-effect-free and unit-testable in isolation.
"""
