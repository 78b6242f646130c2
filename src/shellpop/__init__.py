"""shellpop - a popup command launcher for an interactive shell."""

__version__ = "0.1.0"
