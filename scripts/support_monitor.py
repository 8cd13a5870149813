from __future__ import annotations

from support_tool.cli import monitor_main


if __name__ == "__main__":
    raise SystemExit(monitor_main())
