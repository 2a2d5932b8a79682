"""Services Layer: stateful orchestration around the pure core (session lifecycle, guards)."""
