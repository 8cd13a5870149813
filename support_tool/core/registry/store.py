from __future__ import annotations

import contextlib
import os
import tempfile
from typing import Any, Iterator, List, Optional, Sequence, Set

from support_tool.core.errors import CorruptRecordError, PersistError, RegistryReadError
from support_tool.core.events import AuditLogger, emit
from support_tool.core.registry.codec import format_line, parse_line
from support_tool.core.registry.interface import Registry
from support_tool.core.registry.lock import exclusive_file_lock
from support_tool.core.registry.models import AccountRecord, RegistrySnapshot
from support_tool.core.trace import resolve_trace_id


TMP_PREFIX = ".tmp_registry_"


class FileRegistry(Registry):
    """
    Line-oriented registry file guarded by a separate lock file.

    Both the creator (append) and the monitor (rewrite) hold the same
    exclusive lock for their whole read-modify-write.
    """

    def __init__(self, *, path: str, lock_path: str, logger=None, audit: Optional[AuditLogger] = None):
        if os.path.abspath(path) == os.path.abspath(lock_path):
            raise ValueError("lock file must differ from the registry file")
        self.path = path
        self.lock_path = lock_path
        self.logger = logger
        self.audit = audit

    @property
    def directory(self) -> str:
        return os.path.dirname(os.path.abspath(self.path))

    def ensure_dir(self) -> None:
        os.makedirs(self.directory, mode=0o700, exist_ok=True)

    # ---- reading ----
    def read(self) -> RegistrySnapshot:
        if not os.path.exists(self.path):
            return RegistrySnapshot(exists=False)
        try:
            with open(self.path, "rb") as f:
                data = f.read()
        except OSError as e:
            raise RegistryReadError(path=self.path, error=str(e)) from e

        records: List[AccountRecord] = []
        corrupt: List[CorruptRecordError] = []
        seen: Set[str] = set()
        for line_no, raw in enumerate(data.split(b"\n"), start=1):
            if not raw.strip():
                continue
            try:
                try:
                    line = raw.decode("utf-8")
                except UnicodeDecodeError:
                    raise CorruptRecordError(
                        "Line is not valid UTF-8.",
                        line_no=line_no,
                        line=raw.rstrip(b"\r").decode("utf-8", "replace"),
                    ) from None
                rec = parse_line(line, line_no)
                if rec.id in seen:
                    raise CorruptRecordError("Duplicate account id.", line_no=line_no, line=line.rstrip("\r\n"), account_id=rec.id)
            except CorruptRecordError as err:
                corrupt.append(err)
                self._report_corrupt(err)
                continue
            seen.add(rec.id)
            records.append(rec)
        return RegistrySnapshot(exists=True, records=records, corrupt=corrupt)

    # ---- writing ----
    def atomically_replace(self, records: Sequence[AccountRecord]) -> None:
        self.ensure_dir()
        payload = "".join(format_line(r) + "\n" for r in records)
        tmp: Optional[str] = None
        try:
            fd, tmp = tempfile.mkstemp(prefix=TMP_PREFIX, dir=self.directory)
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(payload)
                f.flush()
                os.fsync(f.fileno())
            os.chmod(tmp, 0o600)
            os.replace(tmp, self.path)
            tmp = None
        except OSError as e:
            raise PersistError(path=self.path, error=str(e)) from e
        finally:
            if tmp is not None:
                try:
                    os.remove(tmp)
                except OSError:
                    pass

    def append(self, record: AccountRecord) -> None:
        self.ensure_dir()
        line = format_line(record) + "\n"
        try:
            fd = os.open(self.path, os.O_WRONLY | os.O_APPEND | os.O_CREAT, 0o600)
            with os.fdopen(fd, "a", encoding="utf-8") as f:
                f.write(line)
                f.flush()
                os.fsync(f.fileno())
        except OSError as e:
            raise PersistError("Registry record could not be appended.", path=self.path, account_id=record.id, error=str(e)) from e

    # ---- locking ----
    @contextlib.contextmanager
    def exclusive_lock(self, *, blocking: bool = True) -> Iterator[None]:
        self.ensure_dir()
        with exclusive_file_lock(self.lock_path, blocking=blocking):
            yield

    # ---- internals ----
    def _report_corrupt(self, err: CorruptRecordError) -> None:
        ctx: dict[str, Any] = dict(err.context or {})
        if self.logger is not None:
            self.logger.warning(
                "Skipping corrupt registry line %s (%s): %r",
                ctx.get("line_no"),
                err.user_message,
                ctx.get("line"),
            )
        emit(
            self.audit,
            trace_id=resolve_trace_id(),
            event="registry.corrupt_record",
            outcome="skipped",
            account_id=ctx.get("account_id"),
            details={"line_no": ctx.get("line_no"), "line": ctx.get("line"), "reason": err.user_message},
        )
