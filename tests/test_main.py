import os
import shutil
import tempfile
import unittest

_tmpdir = tempfile.mkdtemp()
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{os.path.join(_tmpdir, 'bulk_schedule.db')}"
os.environ["DATABASE_ECHO"] = "false"

from fastapi.testclient import TestClient  # noqa: E402

from bulk_schedule.errors import BackendError  # noqa: E402
from bulk_schedule.main import app, get_studio_client  # noqa: E402
from bulk_schedule.models import Directory, DirectoryEntry, ExistingClass  # noqa: E402
from bulk_schedule.timeutils import to_utc  # noqa: E402


def utc_iso(local_time, local_date):
    utc = to_utc(local_time, local_date)
    return f"{utc.date}T{utc.time}:00Z"


def persisted(local_time="09:00", local_date="2024-01-09", instructor_id=1, room_id=100):
    return ExistingClass(
        id=7,
        class_type_id=10,
        instructor_id=instructor_id,
        class_room_id=room_id,
        schedule_time=utc_iso(local_time, local_date),
        duration_minutes=50,
        capacity=6,
        instructor="Sara",
        name="Reformer",
        class_room_name="Studio A",
    )


class FakeStudioClient:
    def __init__(self):
        self.existing = []
        self.created = []
        self.fail_times = set()
        self.unavailable = False

    async def load_directory(self):
        if self.unavailable:
            raise BackendError("Studio API unavailable")
        return Directory(
            instructors=[DirectoryEntry(1, "Sara")],
            class_types=[DirectoryEntry(10, "Reformer")],
            rooms=[DirectoryEntry(100, "Studio A")],
        )

    async def list_classes(self, start_date, end_date):
        return list(self.existing)

    async def create_classes(self, config, dates, start_time):
        if start_time in self.fail_times:
            raise BackendError("Room is booked", status_code=409)
        self.created.append((config.classes_config(), list(dates), start_time))
        return {"success": True}


def configuration(**overrides):
    item = {
        "id": "a",
        "class_type_id": 10,
        "instructor_id": 1,
        "class_room_id": 100,
        "class_type_name": "Reformer",
        "instructor_name": "Sara",
    }
    item.update(overrides)
    return item


def schedule_request(slots=None, **overrides):
    body = {
        "configurations": [configuration()],
        "slots": slots if slots is not None else [{"day_index": 2, "hour": 9, "configuration_ids": ["a"]}],
        "repeat_pattern": "weekly",
        "weeks": 2,
        "start_date": "2024-01-07",
    }
    body.update(overrides)
    return body


class BulkScheduleApiTests(unittest.TestCase):
    @classmethod
    def setUpClass(cls):
        cls.client = TestClient(app)
        cls.client.__enter__()

    @classmethod
    def tearDownClass(cls):
        cls.client.__exit__(None, None, None)
        app.dependency_overrides.clear()
        shutil.rmtree(_tmpdir, ignore_errors=True)

    def setUp(self):
        self.studio = FakeStudioClient()
        app.dependency_overrides[get_studio_client] = lambda: self.studio

    # ---------- read-only ----------
    def test_anchors(self):
        res = self.client.get("/bulk-schedules/anchors")
        self.assertEqual(res.status_code, 200)
        self.assertEqual(len(res.json()["anchors"]), 4)

    def test_directory(self):
        res = self.client.get("/bulk-schedules/directory")
        self.assertEqual(res.status_code, 200)
        self.assertEqual(res.json()["instructors"], [{"id": 1, "name": "Sara"}])

    def test_directory_backend_down(self):
        self.studio.unavailable = True
        res = self.client.get("/bulk-schedules/directory")
        self.assertEqual(res.status_code, 503)

    def test_preview(self):
        slots = [
            {"day_index": 2, "hour": 9, "configuration_ids": ["a"]},
            {"day_index": 0, "hour": 14, "configuration_ids": ["a", "b"]},
        ]
        body = schedule_request(slots=slots)
        body["configurations"].append(configuration(id="b", class_type_id=11, class_type_name="Mat"))
        res = self.client.post("/bulk-schedules/preview", json=body)
        self.assertEqual(res.status_code, 200)
        data = res.json()
        self.assertEqual(data["total_classes"], 6)
        self.assertEqual(data["end_date"], "2024-01-20")
        self.assertEqual(data["unique_days"], 2)
        self.assertEqual(data["slot_counts"], {"a": 2, "b": 1})
        self.assertEqual(data["instructors"], [{"instructor_id": 1, "name": "Sara", "count": 3}])
        self.assertEqual([c["message"] for c in data["room_conflicts"]], ["SUN 2 PM: Reformer, Mat share the same room"])
        self.assertEqual(data["expanded"][:3], [
            {"configuration_id": "a", "date": "2024-01-07", "time": "14:00"},
            {"configuration_id": "b", "date": "2024-01-07", "time": "14:00"},
            {"configuration_id": "a", "date": "2024-01-09", "time": "09:00"},
        ])

    def test_invalid_configuration(self):
        body = schedule_request(configurations=[configuration(class_type_id=0, capacity=0)])
        res = self.client.post("/bulk-schedules/preview", json=body)
        self.assertEqual(res.status_code, 422)
        self.assertEqual(
            [(e["configuration_id"], e["field"]) for e in res.json()["detail"]],
            [("a", "class_type_id"), ("a", "capacity")],
        )

    def test_invalid_slot_and_pattern(self):
        res = self.client.post("/bulk-schedules/preview", json=schedule_request(
            slots=[{"day_index": 2, "hour": 24, "configuration_ids": ["a"]}],
        ))
        self.assertEqual(res.status_code, 422)
        res = self.client.post("/bulk-schedules/preview", json=schedule_request(weeks=60))
        self.assertEqual(res.status_code, 422)

    def test_export(self):
        res = self.client.post("/bulk-schedules/export", json=schedule_request())
        self.assertEqual(res.status_code, 200)
        self.assertTrue(res.headers["content-type"].startswith("text/csv"))
        self.assertIn("schedule-Jan-7-to-Jan-20.csv", res.headers["content-disposition"])
        self.assertEqual(res.text.split("\n")[1], "2024-01-09,09:00,10,1,100,6,50")

    def test_export_empty(self):
        res = self.client.post("/bulk-schedules/export", json=schedule_request(slots=[]))
        self.assertEqual(res.status_code, 400)
        self.assertEqual(res.json()["detail"], "Please select at least one time slot")

    def test_check_conflicts(self):
        self.studio.existing = [persisted()]
        res = self.client.post("/bulk-schedules/check-conflicts", json={
            "instructor_id": 2,
            "class_room_id": 100,
            "date": "2024-01-09",
            "time": "09:00",
            "duration_minutes": 50,
        })
        self.assertEqual(res.status_code, 200)
        data = res.json()
        self.assertFalse(data["valid"])
        self.assertEqual([(c["type"], c["class_id"]) for c in data["conflicts"]], [("room", 7)])

    def test_check_conflicts_rejects_malformed_input(self):
        body = {
            "instructor_id": 2,
            "class_room_id": 100,
            "date": "2024-01-09",
            "time": "9am",
            "duration_minutes": 50,
        }
        self.assertEqual(self.client.post("/bulk-schedules/check-conflicts", json=body).status_code, 422)
        body.update(time="09:00", duration_minutes=10)
        self.assertEqual(self.client.post("/bulk-schedules/check-conflicts", json=body).status_code, 422)

    # ---------- submit ----------
    def test_submit_creates_one_call_per_group(self):
        res = self.client.post("/bulk-schedules/submit", json=schedule_request())
        self.assertEqual(res.status_code, 200)
        data = res.json()
        self.assertTrue(data["ok"])
        self.assertEqual(data["classes_created"], 2)
        self.assertEqual(data["results"][0]["configuration_id"], "a")

        start_time = to_utc("09:00", "2024-01-09").time
        self.assertEqual(self.studio.created, [(
            {"classTypeId": 10, "instructorId": 1, "classRoomId": 100, "capacity": 6, "durationMinutes": 50},
            ["2024-01-09", "2024-01-16"],
            start_time,
        )])

        stored = self.client.get(f"/bulk-schedules/submissions/{data['id']}")
        self.assertEqual(stored.status_code, 200)
        self.assertEqual(stored.json()["classes_created"], 2)

    def test_submit_conflicts_need_confirmation(self):
        self.studio.existing = [persisted()]
        res = self.client.post("/bulk-schedules/submit", json=schedule_request())
        self.assertEqual(res.status_code, 409)
        conflicts = res.json()["detail"]["conflicts"]
        self.assertEqual([c["type"] for c in conflicts], ["instructor", "room"])
        self.assertEqual(conflicts[0]["configuration_id"], "a")
        self.assertEqual(conflicts[0]["date"], "2024-01-09")
        self.assertEqual(self.studio.created, [])

        res = self.client.post("/bulk-schedules/submit", json=schedule_request(confirm=True))
        self.assertEqual(res.status_code, 200)
        self.assertEqual(len(self.studio.created), 1)

    def test_submit_partial_failure(self):
        self.studio.fail_times = {to_utc("10:00", "2024-01-09").time}
        slots = [
            {"day_index": 2, "hour": 9, "configuration_ids": ["a"]},
            {"day_index": 2, "hour": 10, "configuration_ids": ["a"]},
        ]
        res = self.client.post("/bulk-schedules/submit", json=schedule_request(slots=slots, repeat_pattern="one-time"))
        self.assertEqual(res.status_code, 207)
        data = res.json()
        self.assertFalse(data["ok"])
        self.assertEqual(data["classes_created"], 1)
        failed = [r for r in data["results"] if not r["ok"]]
        self.assertEqual([r["local_time"] for r in failed], ["10:00"])
        self.assertIn("Room is booked", failed[0]["error"])

        stored = self.client.get(f"/bulk-schedules/submissions/{data['id']}").json()
        self.assertFalse(stored["ok"])

    def test_submit_without_configurations(self):
        res = self.client.post("/bulk-schedules/submit", json=schedule_request(configurations=[], slots=[]))
        self.assertEqual(res.status_code, 400)
        self.assertEqual(res.json()["detail"], "Please add at least one configuration")

    def test_unknown_submission(self):
        self.assertEqual(self.client.get("/bulk-schedules/submissions/missing").status_code, 404)

    # ---------- templates ----------
    def test_saved_template_round_trip(self):
        res = self.client.post("/templates", json={
            "name": "Mornings",
            "configurations": [configuration()],
            "slots": [
                {"day_index": 1, "hour": 8, "configuration_ids": ["a"]},
                {"day_index": 3, "hour": 8, "configuration_ids": ["a"]},
            ],
        })
        self.assertEqual(res.status_code, 200)
        template_id = res.json()["id"]
        self.assertEqual(res.json()["total_slots"], 2)

        listed = self.client.get("/templates").json()
        self.assertIn(("Mornings", 1, 2), [(t["name"], t["configuration_count"], t["total_slots"]) for t in listed])

        fetched = self.client.get(f"/templates/{template_id}").json()
        self.assertEqual(fetched["configurations"][0]["id"], "a")
        self.assertEqual([(s["day_index"], s["hour"]) for s in fetched["slots"]], [(1, 8), (3, 8)])

        self.assertEqual(self.client.get("/templates/missing").status_code, 404)

    def test_previous_week_template(self):
        self.studio.existing = [persisted(local_time="18:00", local_date="2024-01-07")]
        res = self.client.get("/templates/previous-week", params={"week_start": "2024-01-07"})
        self.assertEqual(res.status_code, 200)
        data = res.json()
        self.assertEqual(data["configurations"][0]["id"], "config-0")
        self.assertEqual(data["slots"], [{"day_index": 0, "hour": 18, "configuration_ids": ["config-0"]}])

    def test_previous_week_template_outside_grid_window_posts_back(self):
        # Monday 22:00 local sits past the 21:00 grid row
        self.studio.existing = [persisted(local_time="22:00", local_date="2024-01-08")]
        template = self.client.get("/templates/previous-week", params={"week_start": "2024-01-07"}).json()
        self.assertEqual(template["slots"], [{"day_index": 1, "hour": 22, "configuration_ids": ["config-0"]}])

        body = {
            "configurations": template["configurations"],
            "slots": template["slots"],
            "repeat_pattern": "one-time",
            "start_date": "2024-01-14",
        }
        res = self.client.post("/bulk-schedules/preview", json=body)
        self.assertEqual(res.status_code, 200)
        self.assertEqual(res.json()["expanded"], [
            {"configuration_id": "config-0", "date": "2024-01-15", "time": "22:00"},
        ])

        saved = self.client.post("/templates", json={
            "name": "Late",
            "configurations": body["configurations"],
            "slots": body["slots"],
        })
        self.assertEqual(saved.status_code, 200)

    def test_previous_week_class_without_room(self):
        self.studio.existing = [persisted(room_id=None)]
        template = self.client.get("/templates/previous-week", params={"week_start": "2024-01-07"}).json()
        config = template["configurations"][0]
        self.assertEqual(config["class_room_id"], 0)
        self.assertIsNone(config["room_name"])

        res = self.client.post("/bulk-schedules/preview", json={
            "configurations": template["configurations"],
            "slots": template["slots"],
            "start_date": "2024-01-14",
        })
        self.assertEqual(res.status_code, 422)
        self.assertEqual([e["field"] for e in res.json()["detail"]], ["class_room_id"])

        config["class_room_id"] = 100
        res = self.client.post("/bulk-schedules/preview", json={
            "configurations": [config],
            "slots": template["slots"],
            "start_date": "2024-01-14",
        })
        self.assertEqual(res.status_code, 200)

    def test_previous_week_without_classes(self):
        res = self.client.get("/templates/previous-week", params={"week_start": "2024-01-07"})
        self.assertEqual(res.status_code, 404)


if __name__ == "__main__":
    unittest.main()
