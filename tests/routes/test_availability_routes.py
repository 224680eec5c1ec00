from tests.factories import TOMORROW, TUESDAY, add_window, new_id


def windows_url(instructor_id: str) -> str:
    return f"/api/v1/instructors/{instructor_id}/availability/windows"


class TestWindowRoutes:
    def test_add_list_and_remove(self, client, instructor_id) -> None:
        payload = {"day_of_week": TUESDAY, "start_time": "09:00", "end_time": "12:00"}

        created = client.post(windows_url(instructor_id), json=payload)
        assert created.status_code == 201
        window = created.json()
        assert window["instructor_id"] == instructor_id
        assert window["start_time"] == "09:00:00"

        listed = client.get(windows_url(instructor_id))
        assert [w["id"] for w in listed.json()] == [window["id"]]

        removed = client.delete(f"{windows_url(instructor_id)}/{window['id']}")
        assert removed.status_code == 204
        assert client.get(windows_url(instructor_id)).json() == []

    def test_inverted_window_is_400(self, client, instructor_id) -> None:
        response = client.post(
            windows_url(instructor_id),
            json={"day_of_week": TUESDAY, "start_time": "12:00", "end_time": "09:00"},
        )

        assert response.status_code == 400
        assert response.json()["detail"]["code"] == "INVALID_WINDOW"

    def test_day_of_week_out_of_range_is_422(self, client, instructor_id) -> None:
        response = client.post(
            windows_url(instructor_id),
            json={"day_of_week": 7, "start_time": "09:00", "end_time": "10:00"},
        )

        assert response.status_code == 422

    def test_replace_day(self, client, db, instructor_id) -> None:
        add_window(db, instructor_id, TUESDAY, 8, 9)

        response = client.put(
            f"/api/v1/instructors/{instructor_id}/availability/days/{TUESDAY}",
            json={"windows": [{"start_time": "18:00", "end_time": "00:00"}]},
        )

        assert response.status_code == 200
        assert [(w["start_time"], w["end_time"]) for w in response.json()] == [
            ("18:00:00", "00:00:00")
        ]

    def test_removing_unknown_window_is_404(self, client, instructor_id) -> None:
        response = client.delete(f"{windows_url(instructor_id)}/{new_id()}")

        assert response.status_code == 404


class TestSlotRoutes:
    def test_slots_for_date_are_bucketed(self, client, db, instructor_id) -> None:
        add_window(db, instructor_id, TUESDAY, 11, 13)
        add_window(db, instructor_id, TUESDAY, 18, 19)

        response = client.get(
            f"/api/v1/instructors/{instructor_id}/availability/slots",
            params={"date": TOMORROW.isoformat()},
        )

        assert response.status_code == 200
        body = response.json()
        assert body["date"] == "2024-03-19"
        assert body["slots"] == ["11:00:00", "12:00:00", "18:00:00"]
        assert body["periods"] == {
            "morning": ["11:00:00"],
            "afternoon": ["12:00:00"],
            "night": ["18:00:00"],
        }

    def test_bookable_dates(self, client, db, instructor_id) -> None:
        add_window(db, instructor_id, TUESDAY, 9, 10)

        response = client.get(
            f"/api/v1/instructors/{instructor_id}/availability/dates", params={"days": 7}
        )

        assert response.status_code == 200
        assert response.json()["dates"] == ["2024-03-19"]
