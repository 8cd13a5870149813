from __future__ import annotations

from support_tool.cli import create_main


if __name__ == "__main__":
    raise SystemExit(create_main())
