"""taskpilot — drives an autonomous coding-agent CLI to genuine completion."""

__version__ = "0.1.0"
