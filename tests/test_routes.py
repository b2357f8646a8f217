import io
from datetime import datetime, timezone
from PIL import Image

from gallery.main import app
from gallery.image_service.models import ImageRecord
from gallery.storage.blob_store import BlobStore

MB = 1024 * 1024


def make_png_bytes():
    img = Image.new("RGB", (10, 10), color="blue")
    buf = io.BytesIO()
    img.save(buf, format="PNG")
    return buf.getvalue()


def upload(client, filename="f.png", data=None, content_type="image/png", **form):
    files = {"file": (filename, data if data is not None else make_png_bytes(), content_type)}
    return client.post("/images", data=form, files=files)


def seed(client, *records):
    for image_id, name, day in records:
        app.state.db.append(ImageRecord(
            id=image_id,
            filename=f"{image_id}.png",
            name=name,
            uploaded_at=datetime(2024, 1, day, tzinfo=timezone.utc),
        ))


def test_health(test_client):
    resp = test_client.get("/")
    assert resp.status_code == 200


# ------------------------------
# /images [POST]
# ------------------------------

def test_upload_image_success(test_client):
    data = make_png_bytes()
    resp = upload(test_client, data=data, width="10", height="10")

    assert resp.status_code == 201
    body = resp.json()
    assert body["name"] == "f.png"
    assert body["filename"] == f"{body['id']}.png"
    assert body["width"] == 10
    assert body["height"] == 10
    assert body["size"] == len(data)
    assert body["mimeType"] == "image/png"
    assert "uploadedAt" in body


def test_uploaded_bytes_read_back_identically(test_client):
    data = make_png_bytes()
    image_id = upload(test_client, data=data).json()["id"]

    resp = test_client.get(f"/images/{image_id}/file")

    assert resp.status_code == 200
    assert resp.content == data
    assert resp.headers["content-type"] == "image/png"
    assert resp.headers["cache-control"] == "public, max-age=31536000, immutable"


def test_upload_with_display_name(test_client):
    resp = upload(test_client, name="Holiday")
    assert resp.json()["name"] == "Holiday"


def test_upload_without_dimensions_omits_them(test_client):
    body = upload(test_client).json()
    assert "width" not in body
    assert "height" not in body


def test_upload_missing_file(test_client):
    resp = test_client.post("/images", data={"name": "nothing"})
    assert resp.status_code == 400
    assert resp.json()["error"] == "No file provided"
    assert resp.json()["code"] == "MissingFile"


def test_upload_invalid_file_type(test_client):
    resp = upload(test_client, "f.txt", b"notimg", "text/plain")
    assert resp.status_code == 400
    assert resp.json()["error"] == "File must be an image"


def test_upload_too_large(test_client):
    resp = upload(test_client, "big.png", b"\0" * (6 * MB), "image/png")
    assert resp.status_code == 400
    assert "6.00MB" in resp.json()["error"]


def test_upload_unsupported_image_type(test_client):
    resp = upload(test_client, "anim.gif", b"GIF89a", "image/gif")
    assert resp.status_code == 400
    assert "image/gif" in resp.json()["error"]


def test_upload_svg(test_client):
    svg = b'<svg xmlns="http://www.w3.org/2000/svg"></svg>'
    resp = upload(test_client, "logo.svg", svg, "image/svg+xml")
    assert resp.status_code == 201


def test_upload_invalid_dimension(test_client):
    resp = upload(test_client, width="0")
    assert resp.status_code == 400
    assert resp.json()["fields"] == ["width"]


def test_upload_storage_failure_is_generic_500(test_client, mocker):
    mocker.patch.object(BlobStore, "save", side_effect=OSError("No space left on device"))

    resp = upload(test_client)

    assert resp.status_code == 500
    assert resp.json() == {"error": "Internal server error"}


# ------------------------------
# /images/{id} [GET + PUT + DELETE]
# ------------------------------

def test_get_image(test_client):
    image_id = upload(test_client).json()["id"]

    resp = test_client.get(f"/images/{image_id}")
    assert resp.status_code == 200
    assert resp.json()["id"] == image_id


def test_get_nonexistent_image(test_client):
    resp = test_client.get("/images/nope")
    assert resp.status_code == 404
    assert "error" in resp.json()


def test_rename_round_trip(test_client):
    created = upload(test_client).json()

    resp = test_client.put(f"/images/{created['id']}", json={"name": "X"})
    assert resp.status_code == 200

    fetched = test_client.get(f"/images/{created['id']}").json()
    assert fetched["name"] == "X"
    assert fetched["id"] == created["id"]
    assert fetched["filename"] == created["filename"]


def test_update_ignores_other_fields(test_client):
    created = upload(test_client).json()

    resp = test_client.put(
        f"/images/{created['id']}",
        json={"name": "X", "id": "hijack", "filename": "other.png", "width": 99},
    )

    body = resp.json()
    assert body["id"] == created["id"]
    assert body["filename"] == created["filename"]
    assert "width" not in body


def test_update_empty_name_rejected(test_client):
    created = upload(test_client).json()
    resp = test_client.put(f"/images/{created['id']}", json={"name": ""})
    assert resp.status_code == 400


def test_update_nonexistent_image(test_client):
    resp = test_client.put("/images/nope", json={"name": "X"})
    assert resp.status_code == 404


def test_delete_twice(test_client):
    image_id = upload(test_client).json()["id"]

    first = test_client.delete(f"/images/{image_id}")
    assert first.status_code == 200
    assert first.json() == {"message": "Image deleted successfully", "id": image_id}

    assert test_client.get(f"/images/{image_id}/file").status_code == 404
    assert test_client.delete(f"/images/{image_id}").status_code == 404


def test_delete_removes_blob(test_client, storage_paths):
    body = upload(test_client).json()
    blob = storage_paths / "downloads" / body["filename"]
    assert blob.exists()

    test_client.delete(f"/images/{body['id']}")

    assert not blob.exists()


def test_file_missing_on_disk(test_client):
    seed(test_client, ("ghost", "ghost.png", 1))
    resp = test_client.get("/images/ghost/file")
    assert resp.status_code == 404


# ------------------------------
# /images [GET list]
# ------------------------------

def test_list_images(test_client):
    upload(test_client, "a.png")
    upload(test_client, "b.png")

    resp = test_client.get("/images")
    assert resp.status_code == 200
    body = resp.json()
    assert len(body["images"]) == 2
    assert body["total"] == 2
    assert body["search"] is None


def test_search_is_case_insensitive(test_client):
    seed(test_client, ("1", "cat.png", 1), ("2", "Cats.png", 2), ("3", "dog.png", 3))

    body = test_client.get("/images", params={"search": "cat"}).json()

    assert sorted(i["name"] for i in body["images"]) == ["Cats.png", "cat.png"]
    assert body["search"] == "cat"


def test_sort_by_upload_time(test_client):
    seed(test_client, ("b", "b", 2), ("a", "a", 1), ("c", "c", 3))

    asc = test_client.get("/images", params={"sort": "uploadedAt", "order": "asc"}).json()
    desc = test_client.get("/images", params={"sort": "uploadedAt", "order": "desc"}).json()

    assert [i["id"] for i in asc["images"]] == ["a", "b", "c"]
    assert [i["id"] for i in desc["images"]] == ["c", "b", "a"]


def test_sort_by_name(test_client):
    seed(test_client, ("1", "beta", 1), ("2", "Alpha", 2), ("3", "gamma", 3))

    body = test_client.get("/images", params={"sort": "name", "order": "asc"}).json()

    assert [i["name"] for i in body["images"]] == ["Alpha", "beta", "gamma"]


def test_limit_reports_truncated_total(test_client):
    seed(test_client, ("1", "x1", 1), ("2", "x2", 2), ("3", "x3", 3))

    body = test_client.get("/images", params={"limit": 1}).json()

    assert len(body["images"]) == 1
    assert body["total"] == 1


def test_list_rejects_bad_parameters(test_client):
    assert test_client.get("/images", params={"limit": 0}).status_code == 400
    assert test_client.get("/images", params={"limit": 101}).status_code == 400
    resp = test_client.get("/images", params={"sort": "size"})
    assert resp.status_code == 400
    assert resp.json()["fields"] == ["sort"]
