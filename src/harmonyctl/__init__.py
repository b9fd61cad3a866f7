"""HarmonyCTL - discover and control Logitech Harmony hubs."""

__version__ = "0.1.0"
