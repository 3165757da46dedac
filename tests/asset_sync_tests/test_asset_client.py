import unittest

from asset_sync.models import AssetRecord
from core.cli_errors import ApiError, AuthError, NotFoundError, ServerError, ValidationError
from tests.asset_sync_tests.fixtures import API, FIXED_NOW, make_asset, make_client
from tests.fakes.http import FakeResponse, FakeSession

ASSETS = API + "/api/assets"
LOCAL_ID = int(FIXED_NOW.timestamp() * 1000)


def _seed(client, *records):
    client.cache.save_assets([AssetRecord.from_wire(r) for r in records])


class FetchTests(unittest.TestCase):
    def test_fetch_reconciles_and_stores(self):
        session = FakeSession().add("GET", ASSETS, FakeResponse({"assets": [make_asset(specs="")]}))
        client = make_client(session)
        _seed(client, make_asset(specs="16GB RAM"), make_asset(id=9, assetId="C1-IT-MON-0009", type="MON"))

        result = client.fetch_assets()
        self.assertFalse(result.offline)
        self.assertEqual(result.tier, 0)
        self.assertEqual([r.asset_id for r in result.records], ["C1-IT-PC-0001", "C1-IT-MON-0009"])
        self.assertEqual(result.records[0].specs, "16GB RAM")
        self.assertEqual(client.cached_assets(), result.records)

    def test_bare_list_response_accepted(self):
        session = FakeSession().add("GET", ASSETS, FakeResponse([make_asset()]))
        self.assertEqual(len(make_client(session).fetch_assets().records), 1)

    def test_offline_returns_cache(self):
        client = make_client()
        _seed(client, make_asset())
        with self.assertLogs("asset_sync.client", level="WARNING"):
            result = client.fetch_assets()
        self.assertTrue(result.offline)
        self.assertEqual(result.error, "Cannot connect to server")
        self.assertEqual(len(result.records), 1)

    def test_server_error_on_read_also_falls_back(self):
        session = FakeSession().add("GET", ASSETS, FakeResponse({"error": "db down"}, status=500))
        result = make_client(session).fetch_assets()
        self.assertTrue(result.offline)

    def test_auth_error_propagates(self):
        session = FakeSession().add("GET", ASSETS, FakeResponse({"error": "Unauthorized"}, status=401))
        with self.assertRaises(AuthError):
            make_client(session).fetch_assets()


class CreateTests(unittest.TestCase):
    PAYLOAD = {
        "campus": "C1",
        "category": "IT",
        "type": "MON",
        "location": "Room 1",
        "photos": ["https://h.example.test/uploads/p.jpg"],
    }

    def test_online_create_stores_echo_first(self):
        echo = make_asset(id=500, assetId="C1-IT-MON-0002", type="MON")
        session = FakeSession().add("POST", ASSETS, FakeResponse({"asset": echo}, status=201))
        client = make_client(session)
        _seed(client, make_asset())
        record = client.create_asset(self.PAYLOAD)
        self.assertEqual(record.id, 500)
        self.assertEqual([r.id for r in client.cached_assets()], [500, 101])
        self.assertEqual(client.cache.load_audit_log(), [])

    def test_unreachable_creates_local_record(self):
        client = make_client()
        _seed(client, make_asset(id=7, assetId="C1-IT-MON-0003", seq=3, type="MON"))
        with self.assertLogs("asset_sync.client", level="WARNING"):
            record = client.create_asset(self.PAYLOAD)
        self.assertEqual(record.id, LOCAL_ID)
        self.assertEqual(record.asset_id, "C1-IT-MON-0004")
        self.assertEqual(record.seq, 4)
        self.assertEqual(record.campus, "Samdach Pan Campus")
        self.assertEqual(list(record.photos), ["/uploads/p.jpg"])
        self.assertTrue(record.extra["localOnly"])
        self.assertEqual(client.cached_assets()[0].asset_id, "C1-IT-MON-0004")
        audit = client.cache.load_audit_log()
        self.assertEqual(audit[0]["action"], "CREATE")
        self.assertEqual(audit[0]["entityId"], "C1-IT-MON-0004")

    def test_route_missing_also_creates_locally(self):
        session = FakeSession().add("POST", ASSETS, FakeResponse({"error": "Not found"}, status=404))
        client = make_client(session)
        self.assertEqual(client.create_asset(self.PAYLOAD).asset_id, "C1-IT-MON-0001")

    def test_local_create_validates(self):
        client = make_client()
        with self.assertRaises(ValidationError):
            client.create_asset(dict(self.PAYLOAD, type="PC", location="Room 1"))
        self.assertEqual(client.cached_assets(), [])
        self.assertEqual(client.cache.load_audit_log(), [])

    def test_application_error_is_not_demoted(self):
        session = FakeSession().add("POST", ASSETS, FakeResponse({"error": "Campus is required"}, status=400))
        client = make_client(session)
        with self.assertRaises(ApiError):
            client.create_asset(self.PAYLOAD)
        self.assertEqual(client.cached_assets(), [])

    def test_server_error_is_not_demoted(self):
        session = FakeSession().add("POST", ASSETS, FakeResponse({"error": "boom"}, status=500))
        client = make_client(session)
        with self.assertRaises(ServerError):
            client.create_asset(self.PAYLOAD)
        self.assertEqual(client.cached_assets(), [])


class UpdateDeleteTests(unittest.TestCase):
    def test_online_update_respects_written_blanks(self):
        echo = make_asset(specs="", notes="")
        session = FakeSession().add("PATCH", ASSETS + "/101", FakeResponse({"asset": echo}))
        client = make_client(session)
        _seed(client, make_asset(specs="old", notes="cached note"))
        record = client.update_asset(101, {"specs": ""})
        self.assertEqual(record.specs, "")
        self.assertEqual(record.notes, "cached note")
        self.assertEqual(client.cached_assets()[0].specs, "")

    def test_local_update(self):
        client = make_client()
        _seed(client, make_asset(specs="old"))
        with self.assertLogs("asset_sync.client", level="WARNING"):
            record = client.update_asset(101, {"location": "Computer Lab 3", "specs": "", "photo": "/uploads/n.jpg"})
        self.assertEqual(record.location, "Computer Lab 3")
        self.assertEqual(record.specs, "")
        self.assertEqual(list(record.photos), ["/uploads/n.jpg", "/uploads/a.jpg"])
        self.assertEqual(record.asset_id, "C1-IT-PC-0001")
        self.assertEqual(client.cached_assets()[0].location, "Computer Lab 3")
        self.assertEqual(client.cache.load_audit_log()[0]["action"], "UPDATE")

    def test_local_update_validates_and_requires_cached_record(self):
        client = make_client()
        _seed(client, make_asset())
        with self.assertRaises(ValidationError):
            client.update_asset(101, {"location": "Room 7"})
        with self.assertRaises(NotFoundError):
            client.update_asset(999, {"location": "Computer Lab 3"})

    def test_delete_online_and_local(self):
        session = FakeSession().add("DELETE", ASSETS + "/101", FakeResponse({"ok": True}))
        client = make_client(session)
        _seed(client, make_asset(), make_asset(id=102, assetId="C1-IT-PC-0002"))
        client.delete_asset(101)
        self.assertEqual([r.id for r in client.cached_assets()], [102])
        self.assertEqual(client.cache.load_audit_log(), [])

        client.delete_asset(102)
        self.assertEqual(client.cached_assets(), [])
        self.assertEqual(client.cache.load_audit_log()[0]["action"], "DELETE")


class HistoryTests(unittest.TestCase):
    def test_local_replacement_done_retires_asset(self):
        client = make_client()
        _seed(client, make_asset())
        entry = {"date": "2024-03-01", "type": "Replacement", "note": "swapped", "completion": "Done"}
        record = client.add_history(101, entry)
        self.assertEqual(record.status, "Retired")
        first = record.maintenance_history.entries[0]
        self.assertEqual((first["id"], first["type"], first["completion"]), (LOCAL_ID, "Replacement", "Done"))
        status = record.status_history.entries[0]
        self.assertEqual((status["fromStatus"], status["toStatus"]), ("Active", "Retired"))
        self.assertEqual(client.cached_assets()[0].status, "Retired")

    def test_local_history_completion_defaults_to_not_yet(self):
        client = make_client()
        _seed(client, make_asset())
        record = client.add_history(101, {"date": "2024-03-01", "type": "Repair", "note": "fan", "completion": "maybe"})
        self.assertEqual(record.maintenance_history.entries[0]["completion"], "Not Yet")
        self.assertEqual(record.status, "Active")

    def test_local_history_requires_fields(self):
        client = make_client()
        _seed(client, make_asset())
        with self.assertRaises(ValidationError):
            client.add_history(101, {"date": "2024-03-01", "type": "Repair"})

    def test_online_history_echo_stored(self):
        echo = make_asset(maintenanceHistory=[{"id": 5, "date": "2024-03-01", "type": "Repair", "note": "x"}])
        session = FakeSession().add("POST", ASSETS + "/101/history", FakeResponse({"asset": echo, "entry": {"id": 5}}))
        client = make_client(session)
        _seed(client, make_asset())
        record = client.add_history(101, {"date": "2024-03-01", "type": "Repair", "note": "x"})
        self.assertEqual([e["id"] for e in record.maintenance_history], [5])
        self.assertEqual(len(client.cached_assets()[0].maintenance_history), 1)

    def test_local_update_history_marks_done_once(self):
        client = make_client()
        history = [{"id": 7, "date": "2024-02-01", "type": "Replacement", "note": "order", "completion": "Not Yet"}]
        _seed(client, make_asset(maintenanceHistory=history))
        record = client.update_history(101, 7, {"completion": "Done", "note": ""})
        self.assertEqual(record.maintenance_history.entries[0]["note"], "order")
        self.assertEqual(record.status, "Retired")
        again = client.update_history(101, 7, {"cost": "20"})
        self.assertEqual(len(again.status_history), 1)
        self.assertEqual(again.maintenance_history.entries[0]["cost"], "20")

    def test_local_delete_history(self):
        client = make_client()
        _seed(client, make_asset(maintenanceHistory=[{"id": 7, "date": "2024-02-01", "type": "Repair", "note": "x"}]))
        record = client.delete_history(101, 7)
        self.assertEqual(len(record.maintenance_history), 0)
        with self.assertRaises(NotFoundError):
            client.delete_history(101, 7)


class StatusTests(unittest.TestCase):
    PREVIOUS = [{"id": 1, "date": "2024-01-01", "fromStatus": "New", "toStatus": "Active"}]

    def test_online_status_sends_explicit_history(self):
        echo = make_asset(status="Repair", statusHistory=[
            {"id": 2, "date": "2024-03-01", "fromStatus": "Active", "toStatus": "Repair"},
            self.PREVIOUS[0],
        ])
        session = FakeSession().add("PATCH", ASSETS + "/101/status", FakeResponse({"asset": echo}))
        client = make_client(session)
        _seed(client, make_asset(statusHistory=self.PREVIOUS))
        record = client.update_status(101, "Repair", reason="fan noise", by="Dara")

        sent = session.calls[0]["json"]
        self.assertEqual(sent["status"], "Repair")
        self.assertEqual(len(sent["statusHistory"]), 2)
        self.assertEqual(sent["statusHistory"][0]["fromStatus"], "Active")
        self.assertEqual(sent["statusHistory"][0]["reason"], "fan noise")
        self.assertEqual(record.status, "Repair")
        self.assertEqual(len(client.cached_assets()[0].status_history), 2)

    def test_local_status_change(self):
        client = make_client()
        _seed(client, make_asset(statusHistory=self.PREVIOUS))
        record = client.update_status(101, "Lost", reason="missing")
        self.assertEqual(record.status, "Lost")
        self.assertEqual([e["toStatus"] for e in record.status_history], ["Lost", "Active"])
        self.assertEqual(client.cached_assets()[0].status, "Lost")
        self.assertEqual(client.cache.load_audit_log()[0]["action"], "STATUS")

    def test_status_required(self):
        with self.assertRaises(ValidationError):
            make_client().update_status(101, " ")


if __name__ == "__main__":
    unittest.main()
