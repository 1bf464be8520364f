"""BetSmart prediction consensus and staking engine."""

__version__ = "1.0.0"
