"""Durable storage for the Wi-Fi networks the device knows about."""

from __future__ import annotations

import fcntl
import json
import logging
import os
import tempfile
import threading
import time
from abc import ABC, abstractmethod
from contextlib import ExitStack, contextmanager, nullcontext
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, ContextManager, Iterator, Mapping

from .errors import PersistenceError, ValidationError

MAX_SSID_BYTES = 32
MIN_PASSPHRASE_BYTES = 8
MAX_PASSPHRASE_BYTES = 63
_FORBIDDEN_CHARACTERS = ("\x00", "\r", "\n")

logger = logging.getLogger(__name__)


class Security(str, Enum):
    WPA2 = "WPA2"
    WPA = "WPA"
    OPEN = "OPEN"

    @property
    def requires_passphrase(self) -> bool:
        return self is not Security.OPEN

    @classmethod
    def parse(cls, value: object) -> "Security":
        if isinstance(value, Security):
            return value
        if isinstance(value, str):
            normalised = value.strip().upper().replace("-", "")
            if normalised in {"", "NONE"}:
                return cls.OPEN
            if normalised in {"WPA2PSK", "RSN"}:
                return cls.WPA2
            if normalised == "WPAPSK":
                return cls.WPA
            try:
                return cls(normalised)
            except ValueError:
                pass
        raise ValidationError(f"Unsupported security mode: {value!r}")


class LoadState(str, Enum):
    """Outcome of the most recent store read."""

    MISSING = "missing"
    LOADED = "loaded"
    RESET = "reset"


@dataclass(frozen=True, slots=True)
class Network:
    """A saved Wi-Fi network."""

    ssid: str
    password: str
    security: Security = Security.WPA2
    added_at: float = 0.0
    priority: int = 0

    def to_dict(self, *, include_password: bool = True) -> dict[str, object]:
        payload: dict[str, object] = {
            "ssid": self.ssid,
            "security": self.security.value,
            "added_at": self.added_at,
            "priority": self.priority,
        }
        if include_password:
            payload["password"] = self.password
        return payload

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "Network":
        ssid = payload.get("ssid")
        password = payload.get("password", "")
        if password is None:
            password = ""
        if not isinstance(ssid, str) or not isinstance(password, str):
            raise ValidationError("Network entries need string ssid and password fields")
        ssid, password, security = validate_network(ssid, password, payload.get("security"))
        added_raw = payload.get("added_at", payload.get("addedAt", 0.0))
        priority_raw = payload.get("priority", 0)
        try:
            added_at = float(added_raw)
            priority = int(priority_raw)
        except (TypeError, ValueError) as exc:
            raise ValidationError("Network timestamps and priorities must be numeric") from exc
        return cls(
            ssid=ssid,
            password=password,
            security=security,
            added_at=added_at,
            priority=priority,
        )


def validate_network(
    ssid: object, password: object, security: object = None
) -> tuple[str, str, Security]:
    """Check credentials and return them normalised.

    When ``security`` is omitted an empty password means an open network and
    anything else WPA2. Raises :class:`ValidationError` without touching any
    state.
    """

    if not isinstance(ssid, str):
        raise ValidationError("SSID must be a string")
    ssid_bytes = len(ssid.encode("utf-8"))
    if ssid_bytes < 1 or ssid_bytes > MAX_SSID_BYTES:
        raise ValidationError(f"SSID must be between 1 and {MAX_SSID_BYTES} bytes")
    if password is None:
        password = ""
    if not isinstance(password, str):
        raise ValidationError("Password must be a string")
    for value, label in ((ssid, "SSID"), (password, "Password")):
        if any(character in value for character in _FORBIDDEN_CHARACTERS):
            raise ValidationError(f"{label} must not contain line breaks or NUL characters")
    if security is None:
        mode = Security.WPA2 if password else Security.OPEN
    else:
        mode = Security.parse(security)
    password_bytes = len(password.encode("utf-8"))
    if mode.requires_passphrase:
        if not MIN_PASSPHRASE_BYTES <= password_bytes <= MAX_PASSPHRASE_BYTES:
            raise ValidationError(
                f"Password must be between {MIN_PASSPHRASE_BYTES} and "
                f"{MAX_PASSPHRASE_BYTES} bytes"
            )
    elif password:
        raise ValidationError("Open networks must not have a password")
    return ssid, password, mode


class StoreBackend(ABC):
    """Where the serialised network list lives."""

    @abstractmethod
    def read(self) -> str | None:  # pragma: no cover - interface only
        """Return the stored text, or ``None`` when nothing was ever written."""

        raise NotImplementedError

    @abstractmethod
    def write(self, payload: str) -> None:  # pragma: no cover - interface only
        """Replace the stored text. Raises :class:`OSError` on failure."""

        raise NotImplementedError

    def locked(self) -> ContextManager[None]:
        """Exclusive section spanning a read-modify-write cycle."""

        return nullcontext()


class JSONFileBackend(StoreBackend):
    """Keep the snapshot in a single file replaced atomically.

    Writers in other processes are excluded with an advisory ``flock`` on a
    sidecar ``.lock`` file, since the snapshot itself is replaced by rename.
    """

    def __init__(self, path: Path | str, *, mode: int = 0o600) -> None:
        self._path = Path(path)
        self._mode = mode

    @property
    def path(self) -> Path:
        return self._path

    @property
    def lock_path(self) -> Path:
        return self._path.with_name(f"{self._path.name}.lock")

    def read(self) -> str | None:
        if not self._path.exists():
            return None
        return self._path.read_text(encoding="utf-8")

    def write(self, payload: str) -> None:
        write_atomic(self._path, payload, mode=self._mode)

    @contextmanager
    def locked(self) -> Iterator[None]:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        fd = os.open(self.lock_path, os.O_RDWR | os.O_CREAT, self._mode)
        try:
            fcntl.flock(fd, fcntl.LOCK_EX)
            try:
                yield
            finally:
                fcntl.flock(fd, fcntl.LOCK_UN)
        finally:
            os.close(fd)


class MemoryBackend(StoreBackend):
    """In-process backend used by tests and dry runs."""

    def __init__(self, content: str | None = None) -> None:
        self.content = content
        self.fail_reads = False
        self.fail_writes = False
        self.writes = 0

    def read(self) -> str | None:
        if self.fail_reads:
            raise OSError("simulated read failure")
        return self.content

    def write(self, payload: str) -> None:
        if self.fail_writes:
            raise OSError("simulated write failure")
        self.content = payload
        self.writes += 1


def write_atomic(path: Path, payload: str, *, mode: int = 0o600) -> None:
    """Write ``payload`` to a temporary sibling and rename it over ``path``."""

    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(dir=str(path.parent), prefix=f".{path.name}.", suffix=".tmp")
    try:
        os.chmod(tmp_name, mode)
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            handle.write(payload)
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(tmp_name, path)
    except OSError:
        try:
            os.unlink(tmp_name)
        except OSError:
            pass
        raise


class NetworkStore:
    """Ordered, SSID-keyed collection of saved networks."""

    def __init__(self, backend: StoreBackend, *, history: bool = True) -> None:
        self._backend = backend
        self._history = history
        self._lock = threading.Lock()
        self._networks: list[Network] = []
        self._load_state = LoadState.MISSING
        self._load_error: str | None = None
        self.load()

    @property
    def load_state(self) -> LoadState:
        return self._load_state

    @property
    def load_error(self) -> str | None:
        return self._load_error

    @property
    def history(self) -> bool:
        return self._history

    def load(self) -> list[Network]:
        """Re-read the backend; failures leave an empty store marked as reset."""

        state, networks, error = self._read_backend()
        if state is LoadState.RESET:
            logger.warning("%s; continuing with an empty network list", error)
        with self._lock:
            self._networks = networks
            self._load_state = state
            self._load_error = error
            return list(networks)

    def _read_backend(self) -> tuple[LoadState, list[Network], str | None]:
        try:
            raw = self._backend.read()
        except (OSError, UnicodeDecodeError) as exc:
            return LoadState.RESET, [], f"Unable to read saved networks: {exc}"
        if raw is None:
            return LoadState.MISSING, [], None
        try:
            payload = json.loads(raw)
        except ValueError as exc:
            return LoadState.RESET, [], f"Saved networks file is not valid JSON: {exc}"
        if not isinstance(payload, list):
            return LoadState.RESET, [], "Saved networks file must contain a JSON array"
        networks: dict[str, Network] = {}
        for item in payload:
            if not isinstance(item, Mapping):
                logger.warning("Skipping malformed saved network entry: %r", item)
                continue
            try:
                network = Network.from_dict(item)
            except ValidationError as exc:
                logger.warning("Skipping invalid saved network entry: %s", exc)
                continue
            networks.pop(network.ssid, None)
            networks[network.ssid] = network
        return LoadState.LOADED, list(networks.values()), None

    def list_networks(self) -> list[Network]:
        with self._lock:
            return list(self._networks)

    def get(self, ssid: str) -> Network | None:
        with self._lock:
            for network in self._networks:
                if network.ssid == ssid:
                    return network
        return None

    def refresh(self) -> list[Network]:
        """Pick up changes written by other processes; unreadable data is ignored."""

        with self._exclusive():
            return list(self._networks)

    def upsert(self, ssid: str, password: str | None, security: object = None) -> list[Network]:
        """Insert or replace ``ssid`` and move it to the end of the sequence."""

        cleaned_ssid, cleaned_password, mode = validate_network(ssid, password, security)
        with self._exclusive():
            if self._history:
                networks = [item for item in self._networks if item.ssid != cleaned_ssid]
            else:
                networks = []
            networks.append(
                Network(
                    ssid=cleaned_ssid,
                    password=cleaned_password,
                    security=mode,
                    added_at=time.time(),
                    priority=len(networks) + 1,
                )
            )
            self._networks = networks
            self._persist_locked()
            return list(networks)

    def delete(self, ssid: str) -> list[Network]:
        """Forget ``ssid``; remaining priorities are renumbered by position."""

        with self._exclusive():
            remaining = [item for item in self._networks if item.ssid != ssid]
            if len(remaining) == len(self._networks):
                return list(remaining)
            self._networks = [
                Network(
                    ssid=item.ssid,
                    password=item.password,
                    security=item.security,
                    added_at=item.added_at,
                    priority=index + 1,
                )
                for index, item in enumerate(remaining)
            ]
            self._persist_locked()
            return list(self._networks)

    @contextmanager
    def _exclusive(self) -> Iterator[None]:
        """Hold both locks and start from what the backend holds right now."""

        with self._lock, ExitStack() as stack:
            try:
                stack.enter_context(self._backend.locked())
            except OSError as exc:
                raise PersistenceError(
                    f"Unable to lock saved networks: {exc}", self._networks
                ) from exc
            self._refresh_locked()
            yield

    def _refresh_locked(self) -> None:
        state, networks, error = self._read_backend()
        if state is LoadState.RESET:
            logger.warning("%s; keeping the in-memory network list", error)
            return
        self._networks = networks

    def _persist_locked(self) -> None:
        payload = json.dumps([item.to_dict() for item in self._networks], indent=2)
        try:
            self._backend.write(payload)
        except OSError as exc:
            raise PersistenceError(
                f"Unable to persist saved networks: {exc}", self._networks
            ) from exc
        self._load_state = LoadState.LOADED
        self._load_error = None


__all__ = [
    "JSONFileBackend",
    "LoadState",
    "MemoryBackend",
    "Network",
    "NetworkStore",
    "Security",
    "StoreBackend",
    "validate_network",
    "write_atomic",
]
