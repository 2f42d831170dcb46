"""Message codec and controller client for the toy relay network."""

__version__ = "0.1.0"
