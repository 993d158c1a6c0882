from event_manager.gateway.server import FORM_OVERHEAD_BYTES, create_app


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.get_json() == {"status": "ok"}

def test_request_ceiling_follows_image_limit(mocker):
    mocker.patch("event_manager.events_service.uploads.MAX_IMAGE_BYTES", 10 * 1024 * 1024)

    app = create_app()

    assert app.config["MAX_CONTENT_LENGTH"] == 10 * 1024 * 1024 + FORM_OVERHEAD_BYTES

def test_request_over_ceiling_reports_image_limit(app, admin_headers, mocker):
    mocker.patch("event_manager.events_service.uploads.MAX_IMAGE_BYTES", 2 * 1024 * 1024)
    app.config["MAX_CONTENT_LENGTH"] = 1024
    client = app.test_client()

    response = client.post(
        "/api/events/create",
        data={"eventName": "Demo", "description": "x" * 4096},
        headers=admin_headers,
        content_type="multipart/form-data",
    )

    assert response.status_code == 400
    assert response.get_json()["message"] == "Image must be 2MB or smaller"

def test_unknown_route(client):
    response = client.get("/api/nowhere")
    assert response.status_code == 404
    assert response.get_json()["message"] == "Route not found"
