import unittest
from dataclasses import dataclass

from s3_fakes import InMemoryS3Client, make_configuration
from s3_storage.serialization import SerializationFormat
from s3_storage.services import ObjectNotFoundError
from s3_storage.settings import ConfigurationError, configuration_context, use_global_configuration
from s3_storage.storage import (
    JsonSimpleStorageService,
    SimpleStorageService,
    XmlSimpleStorageService,
    to_storage,
)


@dataclass
class Order:
    number: int
    status: str


def make_storage(fake_client, service_class=SimpleStorageService, **config_overrides):
    return service_class(make_configuration(**config_overrides), client_factory=fake_client.factory)


class ExistenceTests(unittest.TestCase):
    def setUp(self):
        self.fake_client = InMemoryS3Client({"bucket/a.txt": "a"})
        self.storage = make_storage(self.fake_client)

    def test_container_exists(self):
        self.assertTrue(self.storage.container_exists("bucket"))
        self.assertTrue(self.storage.container_exists("bucket/a.txt"))
        self.assertFalse(self.storage.container_exists("other"))
        self.assertFalse(self.storage.container_exists(""))

    def test_object_exists(self):
        self.assertTrue(self.storage.object_exists("bucket/a.txt"))
        self.assertTrue(self.storage.object_exists("/bucket/a.txt/"))
        self.assertFalse(self.storage.object_exists("bucket/b.txt"))
        self.assertFalse(self.storage.object_exists("bucket"))

    def test_address_helpers(self):
        self.assertEqual("a.txt", SimpleStorageService.resolve_address("bucket/a.txt").key)
        self.assertTrue(SimpleStorageService.is_directory("bucket/dir/"))
        self.assertTrue(SimpleStorageService.is_file("bucket/dir/a.txt"))

    def test_get_client_uses_factory(self):
        self.assertIs(self.fake_client, self.storage.get_client())


class MutationTests(unittest.TestCase):
    def setUp(self):
        self.fake_client = InMemoryS3Client({"bucket/a.txt": "a"})
        self.storage = make_storage(self.fake_client)

    def test_copy(self):
        self.assertIsNotNone(self.storage.copy("bucket/a.txt", "bucket/b.txt"))

        self.assertEqual(["a.txt", "b.txt"], self.fake_client.keys("bucket"))

    def test_copy_with_malformed_paths_is_a_no_op(self):
        self.assertIsNone(self.storage.copy("bucket", "bucket/b.txt"))
        self.assertIsNone(self.storage.copy("bucket/a.txt", "/"))

        self.assertEqual([], self.fake_client.calls_named("copy_object"))

    def test_delete_if_exists(self):
        self.assertIsNotNone(self.storage.delete_if_exists("bucket/a.txt"))
        self.assertIsNone(self.storage.delete_if_exists("bucket/a.txt"))

        self.assertEqual([], self.fake_client.keys("bucket"))
        self.assertEqual(1, len(self.fake_client.calls_named("delete_object")))

    def test_delete_with_malformed_path_is_a_no_op(self):
        self.assertIsNone(self.storage.delete_if_exists("bucket"))

        self.assertEqual([], self.fake_client.calls_named("delete_object"))

    def test_object_url(self):
        self.assertEqual(
            "https://bucket.example.com/a.txt?expires=60",
            self.storage.object_url("bucket/a.txt", expires_in=60),
        )
        self.assertIsNone(self.storage.object_url("bucket"))


class DocumentTests(unittest.TestCase):
    def setUp(self):
        self.fake_client = InMemoryS3Client(buckets=["bucket"])
        self.storage = make_storage(self.fake_client)

    def test_upload_and_download_round_trip(self):
        self.storage.upload_document("bucket/orders/1.json", Order(1, "open"), metadata={"status": "open"})

        self.assertEqual(Order(1, "open"), self.storage.download("bucket/orders/1.json", Order))
        self.assertEqual({"number": 1, "status": "open"}, self.storage.download("bucket/orders/1.json"))

    def test_download_missing_object_raises(self):
        with self.assertRaises(ObjectNotFoundError):
            self.storage.download("bucket/orders/missing.json")

    def test_typed_listing_downloads_each_object(self):
        self.storage.upload_document("bucket/orders/1.json", Order(1, "open"))
        self.storage.upload_document("bucket/orders/2.json", Order(2, "closed"))

        orders = self.storage.list_objects("bucket/orders", target=Order)

        self.assertEqual([Order(1, "open"), Order(2, "closed")], sorted(orders, key=lambda order: order.number))

    def test_list_all_objects(self):
        self.storage.upload("bucket/a/1.txt", b"1")
        self.storage.upload("bucket/a/b/2.txt", b"2")

        listed = self.storage.list_all_objects("bucket/a")

        self.assertEqual(["a/1.txt", "a/b/2.txt"], sorted(item.key for item in listed))

    def test_typed_metadata_search(self):
        self.storage.upload_document("bucket/orders/1.json", Order(1, "open"), metadata={"status": "open"})
        self.storage.upload_document("bucket/orders/2.json", Order(2, "closed"), metadata={"status": "closed"})

        found = self.storage.find_objects("bucket/orders", {"status": "closed"}, target=Order)
        first = self.storage.find_object("bucket/orders", r"1\.json$", target=Order)

        self.assertEqual([Order(2, "closed")], found)
        self.assertEqual(Order(1, "open"), first)
        self.assertIsNone(self.storage.find_object("bucket/orders", "nothing", target=Order))

    def test_format_locked_services(self):
        xml_storage = make_storage(self.fake_client, XmlSimpleStorageService)
        json_storage = make_storage(
            self.fake_client,
            JsonSimpleStorageService,
            serialization_format=SerializationFormat.XML,
        )

        xml_storage.upload_document("bucket/order.xml", Order(3, "open"))
        json_storage.upload_document("bucket/order.json", Order(4, "open"))

        self.assertTrue(self.fake_client.objects[("bucket", "order.xml")].startswith(b"<Order"))
        self.assertTrue(self.fake_client.objects[("bucket", "order.json")].startswith(b"{"))
        self.assertEqual(Order(3, "open"), xml_storage.download("bucket/order.xml", Order))

    def test_to_storage(self):
        to_storage(Order(5, "new"), "bucket/order.json", service=self.storage, metadata={"kind": "order"})

        self.assertEqual(Order(5, "new"), self.storage.download("bucket/order.json", Order))
        self.assertEqual({"kind": "order"}, self.fake_client.metadata[("bucket", "order.json")])


class ConfigurationResolutionTests(unittest.TestCase):
    def tearDown(self):
        use_global_configuration(None)

    def test_missing_configuration_raises(self):
        use_global_configuration(None)
        storage = SimpleStorageService(client_factory=InMemoryS3Client(buckets=["bucket"]).factory)

        with self.assertRaises(ConfigurationError):
            storage.upload("bucket/a.txt", b"data")

    def test_per_call_configuration_overrides_instance(self):
        fake_client = InMemoryS3Client(buckets=["bucket"])
        storage = make_storage(fake_client)

        storage.upload("bucket/a.txt", b"data", configuration=make_configuration(kms_key_id="kms-1"))
        storage.upload("bucket/b.txt", b"data")

        self.assertEqual("kms-1", fake_client.put_calls[0]["SSEKMSKeyId"])
        self.assertNotIn("SSEKMSKeyId", fake_client.put_calls[1])

    def test_with_configuration_rebinds_instance(self):
        fake_client = InMemoryS3Client(buckets=["bucket"])
        storage = make_storage(fake_client)
        replacement = make_configuration(kms_key_id="kms-2")

        self.assertIs(storage, storage.with_configuration(replacement))
        self.assertIs(replacement, storage.configuration)
        storage.upload("bucket/a.txt", b"data")

        self.assertEqual("kms-2", fake_client.put_calls[0]["SSEKMSKeyId"])

    def test_context_and_global_defaults(self):
        fake_client = InMemoryS3Client(buckets=["bucket"])
        storage = SimpleStorageService(client_factory=fake_client.factory)
        use_global_configuration(make_configuration(kms_key_id="global"))

        with configuration_context(make_configuration(kms_key_id="scoped")):
            storage.upload("bucket/a.txt", b"data")
        storage.upload("bucket/b.txt", b"data")

        self.assertEqual(["scoped", "global"], [call["SSEKMSKeyId"] for call in fake_client.put_calls])


if __name__ == "__main__":
    unittest.main()
