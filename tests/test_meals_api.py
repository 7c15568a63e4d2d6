"""End-to-end tests for the meals and images HTTP endpoints."""
from datetime import date, datetime, timezone

from conftest import make_heic, make_jpeg


def upload(client, image=None, filename="meal.jpg", **form):
    files = {"photo": (filename, image if image is not None else make_jpeg(), "image/jpeg")}
    return client.post("/meals", files=files, data=form)


def test_upload_without_estimator_key_uses_fallback(client):
    before = date.today().isoformat()
    response = upload(client)
    after = date.today().isoformat()

    assert response.status_code == 200
    meal = response.json()
    assert (meal["food_name"], meal["calories"], meal["protein"], meal["carbs"], meal["fat"]) == (
        "Unknown food", 300, 15, 30, 10,
    )
    assert meal["photo_taken_at"] is None
    assert meal["date"] in (before, after)
    assert meal["notes"] == ""
    assert meal["photo_path"] == f"{meal['id']}.jpg"


def test_create_then_fetch_round_trip(client):
    created = upload(client, make_jpeg(taken_at="2024:01:15 12:30:45")).json()
    fetched = client.get(f"/meals/{created['id']}")
    assert fetched.status_code == 200
    assert fetched.json() == created
    assert created["meal_type"] == "Lunch"
    assert created["date"] == "2024-01-15"


def test_client_timestamp_beats_embedded_metadata(client):
    meal = upload(
        client,
        make_jpeg(taken_at="2024:01:15 12:30:45"),
        timestamp="2024-03-10T08:15:00",
    ).json()
    assert datetime.fromisoformat(meal["photo_taken_at"]) == datetime(2024, 3, 10, 8, 15).astimezone()
    assert meal["date"] == "2024-03-10"
    assert meal["meal_type"] == "Breakfast"


def test_client_hour_overrides_classification_only(client):
    meal = upload(client, make_jpeg(taken_at="2024:01:15 20:00:00"), hour="8").json()
    assert meal["meal_type"] == "Breakfast"
    assert datetime.fromisoformat(meal["photo_taken_at"]).hour == 20


def test_list_meals_for_date_in_capture_order(client):
    evening = upload(client, timestamp="2024-05-01T19:30:00").json()
    morning = upload(client, timestamp="2024-05-01T07:30:00").json()
    upload(client, timestamp="2024-05-02T07:30:00")

    response = client.get("/meals", params={"date": "2024-05-01"})
    assert response.status_code == 200
    assert [m["id"] for m in response.json()] == [morning["id"], evening["id"]]
    assert client.get("/meals", params={"date": "1999-01-01"}).json() == []


def test_list_meals_defaults_to_today(client):
    today = date.today().isoformat()
    meal = upload(client, timestamp=f"{today}T12:00:00").json()
    ids = [m["id"] for m in client.get("/meals").json()]
    assert ids == [meal["id"]]


def test_upload_without_photo_is_rejected(client):
    response = client.post("/meals", data={"hour": "8"})
    assert response.status_code == 400
    assert response.json()["error"]["message"] == "No photo provided"
    assert client.get("/meals").json() == []


def test_corrupt_photo_returns_500_with_detail(client, settings):
    response = upload(client, b"this is not an image", filename="broken.jpg")
    assert response.status_code == 500
    error = response.json()["error"]
    assert error["message"] == "Failed to process meal"
    assert "Could not process image" in error["details"]["reason"]
    assert not any(settings.uploads_dir.iterdir())


def test_get_unknown_and_malformed_ids(client):
    assert client.get("/meals/6f1c2a9e-8d7b-4c1e-9a55-3e2f1b0c4d5e").status_code == 404
    response = client.get("/meals/not-a-uuid")
    assert response.status_code == 400
    assert response.json()["error"]["details"] == {"field": "id"}


def test_patch_updates_fields_and_ignores_unknown(client):
    meal = upload(client).json()
    response = client.patch(f"/meals/{meal['id']}", json={
        "food_name": "Ramen",
        "calories": 650,
        "meal_type": "Dinner",
        "notes": "extra egg",
        "id": "nope",
        "created_at": "2000-01-01T00:00:00",
        "spiciness": 5,
    })
    assert response.status_code == 200
    updated = response.json()
    assert updated["food_name"] == "Ramen"
    assert updated["calories"] == 650
    assert updated["meal_type"] == "Dinner"
    assert updated["notes"] == "extra egg"
    assert updated["id"] == meal["id"]
    assert updated["created_at"] == meal["created_at"]
    assert updated["date"] == meal["date"]


def test_patch_timestamp_does_not_reclassify(client):
    meal = upload(client, make_jpeg(taken_at="2024:01:15 12:30:45")).json()
    updated = client.patch(f"/meals/{meal['id']}", json={"photo_taken_at": "2024-01-15T19:00:00"}).json()
    assert datetime.fromisoformat(updated["photo_taken_at"]) == datetime(2024, 1, 15, 19, 0).astimezone()
    assert updated["meal_type"] == "Lunch"
    assert updated["date"] == "2024-01-15"


def test_patch_rejects_unparseable_capture_time(client):
    meal = upload(client).json()
    response = client.patch(f"/meals/{meal['id']}", json={"photo_taken_at": "last tuesday"})
    assert response.status_code == 422
    assert client.get(f"/meals/{meal['id']}").json()["photo_taken_at"] is None


def test_patch_capture_time_clears_with_null(client):
    meal = upload(client, timestamp="2024-05-01T08:00:00").json()
    updated = client.patch(f"/meals/{meal['id']}", json={"photo_taken_at": None}).json()
    assert updated["photo_taken_at"] is None
    assert updated["date"] == "2024-05-01"


def test_patched_capture_times_with_offsets_list_chronologically(client):
    first = upload(client, timestamp="2024-05-01T12:00:00").json()
    second = upload(client, timestamp="2024-05-01T12:00:00").json()
    # 03:00 UTC and 05:00 UTC; the raw strings sort the other way round.
    client.patch(f"/meals/{second['id']}", json={"photo_taken_at": "2024-05-01T05:00:00+00:00"})
    client.patch(f"/meals/{first['id']}", json={"photo_taken_at": "2024-05-01T12:00:00+09:00"})

    listed = client.get("/meals", params={"date": "2024-05-01"}).json()
    assert [m["id"] for m in listed] == [first["id"], second["id"]]
    taken = [datetime.fromisoformat(m["photo_taken_at"]) for m in listed]
    assert taken == [datetime(2024, 5, 1, 3, 0, tzinfo=timezone.utc), datetime(2024, 5, 1, 5, 0, tzinfo=timezone.utc)]


def test_heic_upload_is_stored_as_jpeg(client):
    files = {"photo": ("IMG_0042.HEIC", make_heic(taken_at="2024:01:15 07:45:00"), "image/heic")}
    meal = client.post("/meals", files=files).json()
    assert meal["photo_path"] == f"{meal['id']}.jpg"
    assert meal["meal_type"] == "Breakfast"
    assert meal["date"] == "2024-01-15"
    image = client.get(f"/images/{meal['photo_path']}")
    assert image.headers["content-type"] == "image/jpeg"
    assert image.content[:2] == b"\xff\xd8"


def test_empty_patch_returns_record_unchanged(client):
    meal = upload(client).json()
    response = client.patch(f"/meals/{meal['id']}", json={})
    assert response.status_code == 200
    assert response.json() == meal


def test_patch_rejects_negative_numbers(client):
    meal = upload(client).json()
    assert client.patch(f"/meals/{meal['id']}", json={"calories": -5}).status_code == 422


def test_patch_unknown_meal(client):
    response = client.patch("/meals/6f1c2a9e-8d7b-4c1e-9a55-3e2f1b0c4d5e", json={"notes": "x"})
    assert response.status_code == 404


def test_delete_removes_record_and_image(client):
    meal = upload(client).json()
    image_url = f"/images/{meal['photo_path']}"
    assert client.get(image_url).status_code == 200

    response = client.delete(f"/meals/{meal['id']}")
    assert response.status_code == 200
    assert response.json() == {"success": True}
    assert client.get(f"/meals/{meal['id']}").status_code == 404
    assert client.get(image_url).status_code == 404
    assert client.delete(f"/meals/{meal['id']}").status_code == 404


def test_image_is_served_with_cache_header(client):
    meal = upload(client).json()
    response = client.get(f"/images/{meal['photo_path']}")
    assert response.status_code == 200
    assert response.headers["content-type"] == "image/jpeg"
    assert response.headers["cache-control"] == "public, max-age=31536000, immutable"
    assert response.content[:2] == b"\xff\xd8"


def test_image_content_type_from_extension(client, settings):
    settings.uploads_dir.mkdir(parents=True, exist_ok=True)
    (settings.uploads_dir / "legacy.png").write_bytes(b"\x89PNG")
    response = client.get("/images/legacy.png")
    assert response.headers["content-type"] == "image/png"


def test_image_path_escape_is_rejected(client, tmp_path):
    (tmp_path / "secret.txt").write_text("top secret")
    response = client.get("/images/..%2Fsecret.txt")
    assert response.status_code == 400
    assert b"top secret" not in response.content


def test_missing_image_is_404(client):
    assert client.get("/images/nothing-here.jpg").status_code == 404


def test_daily_summary_totals(client):
    a = upload(client, timestamp="2024-05-01T08:00:00").json()
    b = upload(client, timestamp="2024-05-01T12:30:00").json()
    client.patch(f"/meals/{b['id']}", json={"calories": 700, "protein": 40})

    summary = client.get("/meals/summary", params={"date": "2024-05-01"}).json()
    assert summary["date"] == "2024-05-01"
    assert summary["meal_count"] == 2
    assert summary["totals"] == {"calories": 1000, "protein": 55, "carbs": 60, "fat": 20}
    assert summary["by_meal_type"]["Breakfast"]["calories"] == 300
    assert summary["by_meal_type"]["Lunch"]["calories"] == 700
    assert [m["id"] for m in summary["meals"]] == [a["id"], b["id"]]


def test_health(client):
    assert client.get("/health").json() == {"status": "healthy", "database": "connected"}
