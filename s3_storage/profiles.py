from __future__ import annotations
"""Saved connection profiles and their persistence."""
from dataclasses import dataclass
import json
from pathlib import Path

import keyring
from keyring.errors import KeyringError

from .serialization import SerializationFormat
from .settings import DEFAULT_MAX_CONCURRENCY, DEFAULT_PAGE_SIZE, DEFAULT_REGION, ClientConfiguration


@dataclass
class ConnectionProfile:
    """A named, saved client configuration."""

    name: str
    access_key_id: str
    secret_access_key: str = ""
    region: str = DEFAULT_REGION
    endpoint_url: str = ""
    kms_key_id: str = ""
    serialization_format: str = SerializationFormat.JSON.value
    max_concurrency: int = DEFAULT_MAX_CONCURRENCY
    page_size: int = DEFAULT_PAGE_SIZE

    def to_configuration(self) -> ClientConfiguration:
        return ClientConfiguration(
            access_key_id=self.access_key_id,
            secret_access_key=self.secret_access_key,
            region=self.region or DEFAULT_REGION,
            kms_key_id=self.kms_key_id or None,
            serialization_format=SerializationFormat.parse(self.serialization_format),
            endpoint_url=self.endpoint_url or None,
            max_concurrency=self.max_concurrency,
            page_size=self.page_size,
        )


class KeychainStore:
    """Encapsulates OS keychain access for secrets."""

    def __init__(self, service_name: str = "pys3storage"):
        self._service_name = service_name

    def get_secret(self, profile_name: str) -> str:
        if not profile_name:
            return ""
        try:
            return keyring.get_password(self._service_name, profile_name) or ""
        except KeyringError:
            return ""

    def set_secret(self, profile_name: str, secret_key: str) -> None:
        if not profile_name:
            return
        if not secret_key:
            self.delete_secret(profile_name)
            return
        try:
            keyring.set_password(self._service_name, profile_name, secret_key)
        except KeyringError:
            return

    def delete_secret(self, profile_name: str) -> None:
        if not profile_name:
            return
        try:
            keyring.delete_password(self._service_name, profile_name)
        except KeyringError:
            return


def _positive_int(value: object, default: int) -> int:
    try:
        number = int(value)
    except (TypeError, ValueError):
        return default
    return number if number > 0 else default


class ProfileStorage:
    """JSON-backed store for connection profiles; secrets live in the keychain."""

    def __init__(self, storage_path: str | Path | None = None, keychain: KeychainStore | None = None):
        if storage_path is None:
            storage_path = Path.home() / ".pys3storage_profiles.json"
        self._path = Path(storage_path)
        self._keychain = keychain or KeychainStore()

    def load(self) -> list[ConnectionProfile]:
        data = self._read_data()
        profiles: list[ConnectionProfile] = []
        saw_plaintext = False
        for entry in data:
            try:
                name = entry["name"]
                access_key_id = entry["access_key_id"]
            except (KeyError, TypeError):
                continue
            secret = entry.get("secret_access_key", "")
            if secret:
                saw_plaintext = True
                self._keychain.set_secret(name, secret)
            else:
                secret = self._keychain.get_secret(name)
            try:
                serialization_format = SerializationFormat.parse(entry.get("serialization_format")).value
            except ValueError:
                serialization_format = SerializationFormat.JSON.value
            profiles.append(
                ConnectionProfile(
                    name=name,
                    access_key_id=access_key_id,
                    secret_access_key=secret,
                    region=entry.get("region") or DEFAULT_REGION,
                    endpoint_url=entry.get("endpoint_url") or "",
                    kms_key_id=entry.get("kms_key_id") or "",
                    serialization_format=serialization_format,
                    max_concurrency=_positive_int(entry.get("max_concurrency"), DEFAULT_MAX_CONCURRENCY),
                    page_size=_positive_int(entry.get("page_size"), DEFAULT_PAGE_SIZE),
                )
            )
        if saw_plaintext:
            self._write_data([self._sanitize(profile) for profile in profiles])
        return profiles

    def get(self, name: str) -> ConnectionProfile:
        for profile in self.load():
            if profile.name == name:
                return profile
        raise ValueError(f"Profile '{name}' does not exist")

    def save(self, profiles: list[ConnectionProfile]) -> None:
        for profile in profiles:
            self._keychain.set_secret(profile.name, profile.secret_access_key)
        existing_names = {entry.get("name") for entry in self._read_data() if isinstance(entry, dict)}
        current_names = {profile.name for profile in profiles}
        for name in existing_names - current_names:
            if isinstance(name, str) and name:
                self._keychain.delete_secret(name)
        self._write_data([self._sanitize(profile) for profile in profiles])

    def upsert(self, profile: ConnectionProfile) -> None:
        profiles = [existing for existing in self.load() if existing.name != profile.name]
        profiles.append(profile)
        self.save(profiles)

    def delete(self, name: str) -> None:
        profiles = self.load()
        remaining = [profile for profile in profiles if profile.name != name]
        if len(remaining) == len(profiles):
            raise ValueError(f"Profile '{name}' does not exist")
        self.save(remaining)

    @staticmethod
    def _sanitize(profile: ConnectionProfile) -> dict[str, object]:
        return {
            "name": profile.name,
            "access_key_id": profile.access_key_id,
            "region": profile.region,
            "endpoint_url": profile.endpoint_url,
            "kms_key_id": profile.kms_key_id,
            "serialization_format": profile.serialization_format,
            "max_concurrency": profile.max_concurrency,
            "page_size": profile.page_size,
        }

    def _read_data(self) -> list:
        if not self._path.exists():
            return []
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError):
            return []
        return data if isinstance(data, list) else []

    def _write_data(self, data: list[dict[str, object]]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._path.write_text(json.dumps(data, indent=2), encoding="utf-8")
