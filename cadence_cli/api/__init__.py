"""HTTP boundary: job submission, job listing and guard sessions."""

from cadence_cli.api.app import create_app

__all__ = ["create_app"]
