"""Tests for the app factory."""

import os
import unittest
from unittest.mock import patch

from rallybox import create_app
from rallybox.core.constants import STORE_EXTENSION
from rallybox.store import FirestoreStore, MemoryStore


class AppFactoryTestCase(unittest.TestCase):
    """Test case for the app factory."""

    def test_testing_uses_memory_store(self):
        """Test apps keep competitions in memory."""
        app = create_app({"TESTING": True})
        self.assertEqual(app.config["COMPETITION_STORE"], "memory")
        self.assertIsInstance(app.extensions[STORE_EXTENSION], MemoryStore)

    @patch("rallybox.credentials.ApplicationDefault")
    @patch("firebase_admin.initialize_app")
    def test_firestore_store_initializes_firebase(self, mock_init_app, mock_default):
        """Outside testing the Firestore store is used and Firebase is set up."""
        with patch.dict(os.environ, {"STORE_TIMEOUT_SECONDS": "3"}), patch(
            "firebase_admin._apps", {}
        ):
            app = create_app({"COMPETITION_STORE": "firestore"})

        store = app.extensions[STORE_EXTENSION]
        self.assertIsInstance(store, FirestoreStore)
        self.assertEqual(store.timeout, 3.0)
        mock_init_app.assert_called_once()

    def test_unknown_store(self):
        """An unknown store name is a configuration error."""
        with self.assertRaises(ValueError):
            create_app({"TESTING": True, "COMPETITION_STORE": "redis"})

    def test_404_error_handler(self):
        """Unknown routes return a JSON 404."""
        app = create_app({"TESTING": True})
        with app.test_client() as client:
            response = client.get("/non_existent_page")
            self.assertEqual(response.status_code, 404)
            self.assertFalse(response.get_json()["success"])

    def test_405_error_handler(self):
        """Wrong methods return a JSON 405."""
        app = create_app({"TESTING": True})
        with app.test_client() as client:
            response = client.get("/competitions")
            self.assertEqual(response.status_code, 405)
            self.assertEqual(response.get_json()["error"], "MethodNotAllowed")


if __name__ == "__main__":
    unittest.main()
