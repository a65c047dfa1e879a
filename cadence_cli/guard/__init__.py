"""Guard sessions: stored credentials with an on/off switch."""

from cadence_cli.guard.sessions import GuardSession, GuardSessionStore

__all__ = ["GuardSession", "GuardSessionStore"]
