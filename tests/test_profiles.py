import json
import tempfile
import unittest
from pathlib import Path

from s3_storage.profiles import ConnectionProfile, ProfileStorage
from s3_storage.serialization import SerializationFormat


class FakeKeychain:
    def __init__(self):
        self.secrets = {}
        self.set_calls = []
        self.delete_calls = []

    def get_secret(self, profile_name: str) -> str:
        return self.secrets.get(profile_name, "")

    def set_secret(self, profile_name: str, secret_key: str) -> None:
        self.set_calls.append((profile_name, secret_key))
        self.secrets[profile_name] = secret_key

    def delete_secret(self, profile_name: str) -> None:
        self.delete_calls.append(profile_name)
        self.secrets.pop(profile_name, None)


class ProfileStorageTests(unittest.TestCase):
    def test_load_returns_empty_list_when_missing(self):
        with tempfile.TemporaryDirectory() as tmp:
            storage = ProfileStorage(Path(tmp) / "profiles.json", keychain=FakeKeychain())

            self.assertEqual([], storage.load())

    def test_load_migrates_plaintext_secrets(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "profiles.json"
            payload = [
                {
                    "name": "alpha",
                    "endpoint_url": "https://one",
                    "access_key_id": "a",
                    "secret_access_key": "secret",
                }
            ]
            path.write_text(json.dumps(payload), encoding="utf-8")
            fake_keychain = FakeKeychain()
            storage = ProfileStorage(path, keychain=fake_keychain)

            profiles = storage.load()

            self.assertEqual("secret", profiles[0].secret_access_key)
            self.assertEqual([("alpha", "secret")], fake_keychain.set_calls)
            sanitized = json.loads(path.read_text(encoding="utf-8"))
            self.assertNotIn("secret_access_key", sanitized[0])

    def test_load_uses_keychain_when_secret_missing(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "profiles.json"
            payload = [{"name": "alpha", "access_key_id": "a"}]
            path.write_text(json.dumps(payload), encoding="utf-8")
            fake_keychain = FakeKeychain()
            fake_keychain.secrets["alpha"] = "stored-secret"
            storage = ProfileStorage(path, keychain=fake_keychain)

            profiles = storage.load()

            self.assertEqual("stored-secret", profiles[0].secret_access_key)

    def test_load_sanitizes_invalid_values(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "profiles.json"
            payload = [
                {
                    "name": "alpha",
                    "access_key_id": "a",
                    "serialization_format": "yaml",
                    "max_concurrency": "lots",
                    "page_size": -3,
                },
                {"name": "no-access-key"},
                "garbage",
            ]
            path.write_text(json.dumps(payload), encoding="utf-8")
            storage = ProfileStorage(path, keychain=FakeKeychain())

            profiles = storage.load()

            self.assertEqual(["alpha"], [profile.name for profile in profiles])
            self.assertEqual(SerializationFormat.JSON.value, profiles[0].serialization_format)
            self.assertEqual(ConnectionProfile.max_concurrency, profiles[0].max_concurrency)
            self.assertEqual(ConnectionProfile.page_size, profiles[0].page_size)

    def test_save_deletes_removed_keychain_entries(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "profiles.json"
            payload = [
                {"name": "alpha", "endpoint_url": "https://one", "access_key_id": "a"},
                {"name": "beta", "endpoint_url": "https://two", "access_key_id": "b"},
            ]
            path.write_text(json.dumps(payload), encoding="utf-8")
            fake_keychain = FakeKeychain()
            storage = ProfileStorage(path, keychain=fake_keychain)

            profiles = [
                ConnectionProfile(
                    name="alpha",
                    endpoint_url="https://one",
                    access_key_id="a",
                    secret_access_key="secret",
                ),
            ]
            storage.save(profiles)

            self.assertEqual(["beta"], fake_keychain.delete_calls)
            self.assertEqual([("alpha", "secret")], fake_keychain.set_calls)

    def test_upsert_get_and_delete(self):
        with tempfile.TemporaryDirectory() as tmp:
            fake_keychain = FakeKeychain()
            storage = ProfileStorage(Path(tmp) / "nested" / "profiles.json", keychain=fake_keychain)

            storage.upsert(ConnectionProfile(name="alpha", access_key_id="a", secret_access_key="s1"))
            storage.upsert(ConnectionProfile(name="alpha", access_key_id="b", secret_access_key="s2"))

            profile = storage.get("alpha")
            self.assertEqual("b", profile.access_key_id)
            self.assertEqual("s2", profile.secret_access_key)

            storage.delete("alpha")
            self.assertEqual([], storage.load())
            self.assertIn("alpha", fake_keychain.delete_calls)
            with self.assertRaises(ValueError):
                storage.get("alpha")
            with self.assertRaises(ValueError):
                storage.delete("alpha")


class ConnectionProfileTests(unittest.TestCase):
    def test_to_configuration(self):
        profile = ConnectionProfile(
            name="alpha",
            access_key_id="a",
            secret_access_key="s",
            region="",
            endpoint_url="",
            kms_key_id="kms",
            serialization_format="xml",
            page_size=50,
        )

        configuration = profile.to_configuration()

        self.assertEqual("us-east-1", configuration.region)
        self.assertIsNone(configuration.endpoint_url)
        self.assertEqual("kms", configuration.kms_key_id)
        self.assertIs(SerializationFormat.XML, configuration.serialization_format)
        self.assertEqual(50, configuration.page_size)


if __name__ == "__main__":
    unittest.main()
