from __future__ import annotations

from support_tool.cli import audit_main


if __name__ == "__main__":
    raise SystemExit(audit_main())
