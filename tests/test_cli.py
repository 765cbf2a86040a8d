import io
import tempfile
import unittest
from contextlib import redirect_stderr
from pathlib import Path

from s3_fakes import InMemoryS3Client
from s3_storage.__main__ import main
from s3_storage.profiles import ProfileStorage
from s3_storage.storage import SimpleStorageService
from test_profiles import FakeKeychain


class CommandLineTests(unittest.TestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self._tmp.cleanup)
        self.profiles = ProfileStorage(Path(self._tmp.name) / "profiles.json", keychain=FakeKeychain())
        self.fake_client = InMemoryS3Client(
            {"bucket/docs/a.txt": "alpha", "bucket/docs/b.txt": "beta"},
            metadata={"bucket/docs/b.txt": {"owner": "team"}},
        )
        self.configurations = []

    def service_factory(self, configuration):
        self.configurations.append(configuration)
        return SimpleStorageService(configuration, client_factory=self.fake_client.factory)

    def run_cli(self, *argv):
        out = io.StringIO()
        with redirect_stderr(io.StringIO()):
            code = main(list(argv), storage=self.profiles, service_factory=self.service_factory, out=out)
        return code, out.getvalue()

    def test_ls_prints_one_row_per_object(self):
        code, output = self.run_cli("ls", "bucket/docs")

        self.assertEqual(0, code)
        rows = sorted(output.splitlines())
        self.assertEqual(2, len(rows))
        self.assertTrue(rows[0].endswith("bucket/docs/a.txt"))

    def test_put_then_cat(self):
        code, _ = self.run_cli("put", "bucket/notes/n.txt", "hello there", "--meta", "owner=me")
        self.assertEqual(0, code)

        code, output = self.run_cli("cat", "bucket/notes/n.txt")

        self.assertEqual(0, code)
        self.assertEqual("hello there", output)
        self.assertEqual({"owner": "me"}, self.fake_client.metadata[("bucket", "notes/n.txt")])

    def test_cat_missing_object_fails(self):
        code, _ = self.run_cli("cat", "bucket/docs/missing.txt")

        self.assertEqual(1, code)

    def test_exists(self):
        self.assertEqual(0, self.run_cli("exists", "bucket/docs/a.txt")[0])
        self.assertEqual(1, self.run_cli("exists", "bucket/docs/c.txt")[0])

    def test_find_by_metadata_and_pattern(self):
        code, output = self.run_cli("find", "bucket/docs", "--meta", "owner=team")
        self.assertEqual(0, code)
        self.assertTrue(output.strip().endswith("bucket/docs/b.txt"))

        code, output = self.run_cli("find", "bucket/docs", "--pattern", "A\\.TXT", "--first")
        self.assertEqual(0, code)
        self.assertTrue(output.strip().endswith("bucket/docs/a.txt"))

        self.assertEqual(1, self.run_cli("find", "bucket/docs", "--pattern", "nothing")[0])
        self.assertEqual(1, self.run_cli("find", "bucket/docs", "--pattern", "(")[0])

    def test_cp_rm_and_url(self):
        self.assertEqual(0, self.run_cli("cp", "bucket/docs/a.txt", "bucket/copy.txt")[0])
        self.assertIn("copy.txt", self.fake_client.keys("bucket"))

        self.assertEqual(0, self.run_cli("rm", "bucket/copy.txt")[0])
        self.assertNotIn("copy.txt", self.fake_client.keys("bucket"))

        code, output = self.run_cli("url", "bucket/docs/a.txt", "--expires", "30")
        self.assertEqual(0, code)
        self.assertEqual("https://bucket.example.com/docs/a.txt?expires=30", output.strip())
        self.assertEqual(1, self.run_cli("url", "bucket")[0])

    def test_get_downloads_directory(self):
        destination = Path(self._tmp.name) / "out"

        code, output = self.run_cli("get", "bucket/docs", str(destination))

        self.assertEqual(0, code)
        self.assertEqual(b"beta", (destination / "b.txt").read_bytes())
        self.assertEqual(2, len(output.splitlines()))

    def test_profiles_drive_configuration(self):
        code, _ = self.run_cli(
            "--region",
            "eu-west-1",
            "profile",
            "add",
            "alpha",
            "--access-key-id",
            "id",
            "--secret-access-key",
            "secret",
        )
        self.assertEqual(0, code)

        code, output = self.run_cli("profile", "list")
        self.assertEqual(0, code)
        self.assertEqual("alpha\teu-west-1\t-", output.strip())

        code, _ = self.run_cli("--profile", "alpha", "--format", "xml", "exists", "bucket/docs/a.txt")
        self.assertEqual(0, code)
        configuration = self.configurations[-1]
        self.assertEqual("id", configuration.access_key_id)
        self.assertEqual("secret", configuration.secret_access_key)
        self.assertEqual("eu-west-1", configuration.region)
        self.assertEqual("xml", configuration.serialization_format.value)

        self.assertEqual(0, self.run_cli("profile", "remove", "alpha")[0])
        self.assertEqual(1, self.run_cli("profile", "remove", "alpha")[0])
        self.assertEqual(1, self.run_cli("--profile", "alpha", "exists", "bucket/docs/a.txt")[0])


if __name__ == "__main__":
    unittest.main()
