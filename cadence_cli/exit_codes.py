"""Standard exit codes for the Cadence CLI."""


class ExitCode:
    """Standard exit codes for the Cadence CLI.

    Cadence-specific codes start at 2:
    - 2: Configuration error
    - 5: Network error
    - 7: Invalid argument
    - 8: Not found
    - 10: Remote resolution or authentication failure
    """

    SUCCESS = 0
    GENERAL_ERROR = 1

    CONFIGURATION_ERROR = 2
    NETWORK_ERROR = 5
    INVALID_ARGUMENT = 7
    NOT_FOUND = 8
    REMOTE_REJECTED = 10

    # Ctrl+C (SIGINT = 2)
    CANCELLED = 130

    @classmethod
    def get_name(cls, code: int) -> str:
        """Get the name of an exit code."""
        names = {
            cls.SUCCESS: "SUCCESS",
            cls.GENERAL_ERROR: "GENERAL_ERROR",
            cls.CONFIGURATION_ERROR: "CONFIGURATION_ERROR",
            cls.NETWORK_ERROR: "NETWORK_ERROR",
            cls.INVALID_ARGUMENT: "INVALID_ARGUMENT",
            cls.NOT_FOUND: "NOT_FOUND",
            cls.REMOTE_REJECTED: "REMOTE_REJECTED",
            cls.CANCELLED: "CANCELLED",
        }
        return names.get(code, f"UNKNOWN({code})")
