from __future__ import annotations

from support_tool.cli import config_main


if __name__ == "__main__":
    raise SystemExit(config_main())
