"""Hook registry: id derivation and idempotent record upserts.

The registry is the hooks.json list served by the listener daemon. It is
shared by every registered app, so writes hold an exclusive lock across the
whole read-modify-write and replace the file atomically.
"""

import fcntl
import json
import os
import re
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

from hookdeploy.errors import RegistryCorruptError
from hookdeploy.logging import get_logger
from hookdeploy.models import HookRecord, UpsertOutcome

logger = get_logger(__name__)

_UNSAFE_ID_CHARS = re.compile(r"[^A-Za-z0-9_]")


def sanitize_id_part(text: str) -> str:
    """Replace every character outside [A-Za-z0-9_] with an underscore."""
    return _UNSAFE_ID_CHARS.sub("_", text)


def compute_app_id(
    project_dir_name: str,
    branch: str,
    namespace: str = "webhook",
    default_branch: str = "main",
) -> str:
    """Derive the hook id for a project directory and branch.

    Examples:
        compute_app_id("my-app", "main")       -> "webhook-my_app"
        compute_app_id("my-app", "feature/x")  -> "webhook-my_app-feature_x"
    """
    app_id = f"{namespace}-{sanitize_id_part(project_dir_name)}"
    if branch != default_branch:
        app_id = f"{app_id}-{sanitize_id_part(branch)}"
    return app_id


class HookRegistry:
    """Store over the shared hooks.json file.

    Entries are kept as the raw dicts read from disk. Only the record being
    upserted goes through HookRecord; every other hook is written back with
    its keys, order and values exactly as loaded.
    """

    def __init__(self, path: Path) -> None:
        self.path = Path(path)
        self.lock_path = self.path.with_name(f".{self.path.name}.lock")

    def load(self) -> list[dict]:
        """Read all entries. A missing file is an empty registry.

        Raises:
            RegistryCorruptError: If the file is not a JSON list of objects
                that each carry a string id.
        """
        if not self.path.exists():
            return []
        raw = self.path.read_text(encoding="utf-8")
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            raise RegistryCorruptError(f"{self.path} is not valid JSON: {e}") from e
        if not isinstance(data, list):
            raise RegistryCorruptError(
                f"{self.path} must contain a JSON list, found {type(data).__name__}"
            )

        for index, entry in enumerate(data):
            if not isinstance(entry, dict) or not isinstance(entry.get("id"), str):
                raise RegistryCorruptError(f"{self.path}: entry {index} has no string id")
        return data

    def get(self, app_id: str) -> dict | None:
        for entry in self.load():
            if entry["id"] == app_id:
                return entry
        return None

    def upsert(self, record: HookRecord) -> UpsertOutcome:
        """Insert `record`, or replace the entry with the same id in place.

        Other entries keep their position and content. The file is only
        replaced once the new content is fully written.
        """
        new_entry = record.to_listener_dict()
        with self._locked():
            existed = self.path.exists()
            entries = self.load()

            outcome = UpsertOutcome.APPENDED if existed else UpsertOutcome.CREATED
            for index, current in enumerate(entries):
                if current["id"] == record.id:
                    entries[index] = new_entry
                    outcome = UpsertOutcome.UPDATED
                    break
            else:
                entries.append(new_entry)

            self._write(entries)

        logger.info(
            "registry_upserted",
            path=str(self.path),
            hook_id=record.id,
            outcome=outcome.value,
            total=len(entries),
        )
        return outcome

    @contextmanager
    def _locked(self) -> Iterator[None]:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.lock_path, "a") as lock_file:
            fcntl.flock(lock_file.fileno(), fcntl.LOCK_EX)
            try:
                yield
            finally:
                fcntl.flock(lock_file.fileno(), fcntl.LOCK_UN)

    def _write(self, entries: list[dict]) -> None:
        payload = json.dumps(entries, indent=2, ensure_ascii=False)
        fd, tmp_name = tempfile.mkstemp(
            dir=self.path.parent, prefix=f".{self.path.name}.", suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(payload + "\n")
                f.flush()
                os.fsync(f.fileno())
            os.chmod(tmp_name, 0o644)
            os.replace(tmp_name, self.path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise
