import asyncio

import pytest

from healthcare_plus.core.exceptions import Forbidden
from healthcare_plus.models.health_tip import DEFAULT_TIPS, FALLBACK_TIP
from healthcare_plus.services.health_tip_service import HealthTipService
from tests.conftest import ADMIN, JANE


class TestHealthTipService:

    def test_random_tip_falls_back_when_empty(self, store):
        tip = asyncio.run(HealthTipService(store).random_tip())
        assert tip == FALLBACK_TIP

    def test_random_tip_counts_views(self, store):
        service = HealthTipService(store)
        created = asyncio.run(service.create_tip(ADMIN, "Sleep well", "sleep"))

        tip = asyncio.run(service.random_tip())
        assert tip["id"] == created["id"]
        assert tip["views"] == 1
        assert tip["last_displayed"] is not None

    def test_inactive_tips_are_skipped(self, store):
        service = HealthTipService(store)
        created = asyncio.run(service.create_tip(ADMIN, "Sleep well", "sleep"))
        asyncio.run(store.update("healthtips", created["id"], {"is_active": False}))

        assert asyncio.run(service.random_tip())["id"] == "fallback"
        assert asyncio.run(service.by_category("sleep")) == []

    def test_create_tip_admin_only(self, store):
        with pytest.raises(Forbidden):
            asyncio.run(HealthTipService(store).create_tip(JANE, "Sleep well", "sleep"))

    def test_seed_defaults_only_once(self, store):
        service = HealthTipService(store)

        assert asyncio.run(service.seed_defaults()) == len(DEFAULT_TIPS)
        assert asyncio.run(service.seed_defaults()) == 0
        assert len(asyncio.run(service.list_tips(ADMIN))) == len(DEFAULT_TIPS)


class TestHealthTipEndpoints:

    def test_random_is_public(self, client):
        response = client.get("/api/v1/healthtips/random")
        assert response.status_code == 200
        assert response.json()["content"]

    def test_by_category(self, client):
        response = client.get("/api/v1/healthtips/category/nutrition")
        assert response.status_code == 200
        data = response.json()
        assert data["count"] == sum(1 for t in DEFAULT_TIPS if t["category"] == "nutrition")

    def test_list_and_create_require_admin(self, client, patient_headers, admin_headers):
        tip = {"content": "Wash your hands", "category": "hygiene", "tags": ["hands"]}

        assert client.post("/api/v1/healthtips", json=tip, headers=patient_headers).status_code == 403

        response = client.post("/api/v1/healthtips", json=tip, headers=admin_headers)
        assert response.status_code == 201
        assert response.json()["source"] == "Healthcare Plus Medical Team"

        listing = client.get("/api/v1/healthtips", headers=admin_headers).json()
        assert listing["count"] == len(DEFAULT_TIPS) + 1
