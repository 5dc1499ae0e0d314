import unittest

from garagebot.models import UserCredential
from garagebot.state import CredentialStore, KeyValueStore, MemoryStore


class MemoryStoreTests(unittest.TestCase):
    def test_get_returns_none_for_unknown_key(self) -> None:
        store = MemoryStore()
        self.assertIsNone(store.get("missing"))
        self.assertNotIn("missing", store)

    def test_put_overwrites_existing_value(self) -> None:
        store = MemoryStore()
        store.put("a", 1)
        store.put("a", 2)
        self.assertEqual(store.get("a"), 2)
        self.assertEqual(len(store), 1)

    def test_base_interface_is_abstract(self) -> None:
        store = KeyValueStore()
        with self.assertRaises(NotImplementedError):
            store.get("a")
        with self.assertRaises(NotImplementedError):
            store.put("a", 1)


class CredentialStoreTests(unittest.TestCase):
    def test_repeated_handoffs_keep_one_entry_per_user(self) -> None:
        store = CredentialStore(MemoryStore())
        for index in range(5):
            store.put(UserCredential(user_id=77, access_token=f"token-{index}", account_id="42"))
        self.assertEqual(len(store), 1)
        self.assertEqual(store.get(77).access_token, "token-4")

    def test_users_are_stored_independently(self) -> None:
        store = CredentialStore()
        store.put(UserCredential(user_id=1, access_token="A", account_id="10"))
        store.put(UserCredential(user_id=2, access_token="B", account_id="20"))
        self.assertEqual(len(store), 2)
        self.assertIn(1, store)
        self.assertEqual(store.get(2).account_id, "20")
        self.assertIsNone(store.get(3))


if __name__ == "__main__":
    unittest.main()
