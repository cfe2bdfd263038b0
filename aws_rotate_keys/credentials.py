import configparser
import logging
import os
import shutil
from dataclasses import dataclass
from typing import Optional

from . import config
from .errors import StoreError

ACCESS_KEY_ID = "aws_access_key_id"
SECRET_ACCESS_KEY = "aws_secret_access_key"

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AccessKey:
    id: str
    secret: str
    user: Optional[str] = None

    @property
    def complete(self):
        return bool(self.id) and bool(self.secret)

    def credentials(self):
        return ActiveCredentials(self.id, self.secret)


@dataclass(frozen=True)
class ActiveCredentials:
    """The key pair IAM calls are currently authenticated with."""

    access_key_id: str
    secret_access_key: str

    def __repr__(self):
        return f"ActiveCredentials(access_key_id={self.access_key_id!r})"


class CredentialStore:
    """Reads and writes profiles in the shared AWS credentials file.

    The file is re-read on every call so that nothing is cached across a run.
    """

    def __init__(self, path=None):
        self.path = os.path.expanduser(path or config.CREDENTIALS_FILE)

    def _load(self):
        parser = configparser.ConfigParser(interpolation=None)
        try:
            parser.read(self.path, encoding="utf-8")
        except (OSError, configparser.Error, UnicodeDecodeError) as e:
            raise StoreError(f"Could not read {self.path}: {e}") from e
        return parser

    def profiles(self):
        return self._load().sections()

    def get(self, profile):
        parser = self._load()
        if not parser.has_section(profile):
            return None
        section = parser[profile]
        key_id = section.get(ACCESS_KEY_ID, "").strip()
        secret = section.get(SECRET_ACCESS_KEY, "").strip()
        if not key_id or not secret:
            return None
        return AccessKey(key_id, secret)

    def set(self, profile, key):
        """Overwrite the key pair of one profile, leaving every other line as it was."""
        self._load()
        try:
            with open(self.path, encoding="utf-8") as f:
                lines = f.read().splitlines(keepends=True)
        except FileNotFoundError:
            lines = []
        except (OSError, UnicodeDecodeError) as e:
            raise StoreError(f"Could not read {self.path}: {e}") from e

        lines = update_section(
            lines, profile, {ACCESS_KEY_ID: key.id, SECRET_ACCESS_KEY: key.secret}
        )
        try:
            os.makedirs(os.path.dirname(self.path) or ".", exist_ok=True)
            fd = os.open(self.path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
            # the mode above only applies to newly created files
            os.fchmod(fd, 0o600)
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.writelines(lines)
        except OSError as e:
            raise StoreError(f"Could not write profile {profile} to {self.path}: {e}") from e
        logger.debug(f"Wrote key {key.id} to profile {profile}")

    def backup(self):
        backup_path = f"{self.path}.bak"
        try:
            shutil.copy2(self.path, backup_path)
        except OSError as e:
            raise StoreError(f"Could not back up {self.path}: {e}") from e
        logger.info(f"Backed up credentials file to {backup_path}")
        return backup_path


def _section_name(line):
    stripped = line.strip()
    if stripped.startswith("[") and stripped.endswith("]"):
        return stripped[1:-1].strip()
    return None


def _option_name(line):
    stripped = line.strip()
    if not stripped or stripped[0] in "#;":
        return None
    name, sep, _ = stripped.replace(":", "=", 1).partition("=")
    return name.strip().lower() if sep else None


def update_section(lines, section, values):
    """Return ``lines`` with ``values`` set inside ``[section]``.

    Existing options are replaced where they stand; missing ones are added at
    the end of the section, and the section is appended if it does not exist.
    Comments and unrelated lines are kept as they are.
    """
    lines = list(lines)
    if lines and not lines[-1].endswith("\n"):
        lines[-1] += "\n"

    pending = dict(values)
    result = []
    in_section = found = False

    def flush():
        tail = []
        while result and not result[-1].strip():
            tail.insert(0, result.pop())
        result.extend(f"{name} = {value}\n" for name, value in pending.items())
        result.extend(tail)
        pending.clear()

    for line in lines:
        name = _section_name(line)
        if name is not None:
            if in_section:
                flush()
            in_section = name == section
            found = found or in_section
        elif in_section and _option_name(line) in values:
            option = _option_name(line)
            if option in pending:
                result.append(f"{option} = {pending.pop(option)}\n")
            continue
        result.append(line)

    if in_section:
        flush()
    if not found:
        if result and result[-1].strip():
            result.append("\n")
        result.append(f"[{section}]\n")
        flush()
    return result
