"""
Entry point for running the server as a module.

Usage:
    python -m toolgate.server
    python -m toolgate.server --port 8080 --host 0.0.0.0
"""

from .cli import main

if __name__ == "__main__":
    main()
