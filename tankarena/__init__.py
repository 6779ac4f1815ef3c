"""Tank arena game server: map generation, game rules, message protocol and WebSocket server."""

__version__ = "0.1.0"
__all__ = ["config", "model", "gamemap", "logic", "protocol", "server"]