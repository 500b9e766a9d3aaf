"""Tests for the analysis endpoints."""

from fastapi.testclient import TestClient

from meal_inference.api.app import create_app


def test_health_reports_breaker_state(container) -> None:
    client = TestClient(create_app(container))

    response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok", "productDatabase": "closed"}


def test_text_analysis_endpoint(container) -> None:
    container.gateway.client.queue(
        {
            "foods": ["whole wheat bread"],
            "protein": 7,
            "calories": 160,
            "confidence": 0.7,
            "productType": "NATURAL_FOOD",
        }
    )
    client = TestClient(create_app(container))

    response = client.post(
        "/analysis/text", json={"description": "2 slices of whole wheat bread"}
    )

    assert response.status_code == 200
    data = response.json()
    assert data["dataSource"] == "FALLBACK_DATABASE"
    assert data["productType"] == "NATURAL_FOOD"
    assert data["estimatedWeightG"] == 50
    assert data["requiresManualReview"] is False


def test_text_analysis_rejects_empty_description(container) -> None:
    client = TestClient(create_app(container))

    response = client.post("/analysis/text", json={"description": ""})

    assert response.status_code == 422


def test_image_analysis_endpoint_degrades_unknown_image(container) -> None:
    client = TestClient(create_app(container))

    response = client.post(
        "/analysis/image", json={"imageLocator": "meals/unknown.jpg"}
    )

    assert response.status_code == 200
    data = response.json()
    assert data["confidence"] == 0.0
    assert data["requiresManualReview"] is True
    assert data["foods"] == ["unidentified meal"]
