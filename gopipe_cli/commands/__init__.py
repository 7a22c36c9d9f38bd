"""
CLI Commands

Exit codes shared by every command.
"""

# Exit codes
EXIT_SUCCESS = 0
EXIT_RUNTIME_ERROR = 1
EXIT_INVALID_INPUT = 2
