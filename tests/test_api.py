"""Tests for the FastAPI layer."""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from conftest import FakeHttp, FakeResponse, make_image
from rmbg_service import api, codec


@pytest.fixture
def client(make_remover, monkeypatch: pytest.MonkeyPatch) -> TestClient:
    remover = make_remover()
    monkeypatch.setattr(api, "get_remover", lambda: remover)
    return TestClient(api.app)


def test_health_reports_model_state(client: TestClient) -> None:
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok", "model": "idle"}


def test_remove_bg_from_base64(client: TestClient) -> None:
    payload = {"imageBase64": codec.encode_data_url(make_image(20, 10))}

    response = client.post("/remove-bg", json=payload)

    assert response.status_code == 200
    body = response.json()
    assert body["image"].startswith("data:image/png;base64,")
    assert (body["width"], body["height"]) == (20, 10)
    assert client.get("/health").json()["model"] == "ready"


def test_remove_bg_from_url(client: TestClient, monkeypatch: pytest.MonkeyPatch) -> None:
    png = codec.encode_png(make_image(6, 6))
    monkeypatch.setattr(api, "_download_image", lambda url: png)

    response = client.post("/remove-bg", json={"imageUrl": "https://images.test/cat.png"})

    assert response.status_code == 200
    assert (response.json()["width"], response.json()["height"]) == (6, 6)


@pytest.mark.parametrize(
    "payload",
    [
        {},
        {"imageUrl": "https://images.test/a.png", "imageBase64": "abc"},
        {"imageBase64": "data:image/png;base64,@@@"},
    ],
)
def test_bad_requests_return_400(client: TestClient, payload) -> None:
    response = client.post("/remove-bg", json=payload)

    assert response.status_code == 400


def test_unreachable_image_url_returns_400(client: TestClient, monkeypatch: pytest.MonkeyPatch) -> None:
    def fail(url: str) -> bytes:
        raise ConnectionError("unreachable")

    monkeypatch.setattr(api, "_download_image", fail)

    response = client.post("/remove-bg", json={"imageUrl": "https://images.test/missing.png"})

    assert response.status_code == 400


def test_model_download_failure_returns_503(make_remover, monkeypatch: pytest.MonkeyPatch) -> None:
    remover = make_remover(http_override=FakeHttp(lambda: FakeResponse([b""], status_code=404)))
    monkeypatch.setattr(api, "get_remover", lambda: remover)
    client = TestClient(api.app)

    response = client.post("/remove-bg", json={"imageBase64": codec.encode_data_url(make_image())})

    assert response.status_code == 503
