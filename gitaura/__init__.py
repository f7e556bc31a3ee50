"""GitAura: aura scoring and leaderboard ranking engine."""

__version__ = "1.0.0"
