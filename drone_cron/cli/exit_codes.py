"""Standard exit codes for drone-cron.

Every command exits with one of these codes so that service managers
and wrapper scripts can tell a bad configuration apart from an
unreachable Drone server.
"""


class ExitCode:
    """Standard exit codes for drone-cron.

    These codes follow common Unix conventions where possible:
    - 0: Success
    - 1: General error
    - 130: Terminated by Ctrl+C (SIGINT)

    drone-cron specific codes start at 2:
    - 2: Configuration error
    - 3: Network error (Drone server unreachable or rejected the request)
    - 4: Scheduler error
    - 5: Invalid argument
    - 6: Not found
    """

    SUCCESS = 0

    GENERAL_ERROR = 1

    CONFIGURATION_ERROR = 2
    NETWORK_ERROR = 3
    SCHEDULER_ERROR = 4
    INVALID_ARGUMENT = 5
    NOT_FOUND = 6

    # Signal-based exits (128 + signal number)
    CANCELLED = 130  # Ctrl+C (SIGINT = 2)
