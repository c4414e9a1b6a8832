"""Module entrypoint.

Allows:
    python -m mcp_log_monitor [watch|serve] [log_path]
"""

from __future__ import annotations

from mcp_log_monitor.cli import main

if __name__ == "__main__":
    main()
