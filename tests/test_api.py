#!/usr/bin/env python3
"""
HTTP API Test Suite

PURPOSE:
    Calls the FastAPI endpoints through TestClient with the controller
    dependency pointed at an in-memory store.

TEST COVERAGE:
    - /interpret result variants and request validation
    - /orders commit and empty-order rejection
    - /orders/{id}/cancel including unknown ids
    - /cache/reload, /automation/stats, /health

USAGE:
    Run from project root: python -m pytest tests/test_api.py -v
"""

import unittest

from fastapi.testclient import TestClient

from orderbot.app.controller import Controller
from orderbot.app.main import app, get_controller
from orderbot.automation.engine import BALANCED, AutomationEngine
from orderbot.automation.monitor import AutomationMonitor
from orderbot.data.database import make_engine, make_session_factory
from orderbot.data.populate_db import populate_catalog
from orderbot.data.store import SqlOrderStore


class TestOrderAPI(unittest.TestCase):

    def setUp(self):
        engine = make_engine("sqlite://")
        factory = make_session_factory(engine)
        populate_catalog(session_factory=factory, bind=engine)
        self.controller = Controller(
            store=SqlOrderStore(session_factory=factory),
            engine=AutomationEngine(BALANCED, AutomationMonitor(namespace="api-test", use_redis=False)),
        )
        app.dependency_overrides[get_controller] = lambda: self.controller
        self.client = TestClient(app)

    def tearDown(self):
        app.dependency_overrides.clear()

    def interpret(self, text, **extra):
        return self.client.post("/interpret", json={"text": text, **extra})

    def test_health(self):
        response = self.client.get("/health")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), {"status": "healthy"})

    def test_interpret_success(self):
        response = self.interpret("Mr Somchai orders IceTube 60 quantity 2")
        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual(body["kind"], "success")
        self.assertEqual(body["intent"]["items"][0]["entry"]["name"], "Ice Tube")
        self.assertEqual(body["intent"]["total"], 120)
        self.assertTrue(body["verdict"]["auto"])

    def test_interpret_disambiguation_and_failure(self):
        body = self.interpret("orders Coke 5").json()
        self.assertEqual(body["kind"], "disambiguation")
        self.assertEqual(len(body["ambiguous"][0]["candidates"]), 2)

        body = self.interpret("blah blah gibberish xyz").json()
        self.assertEqual((body["kind"], body["reason"]), ("failure", "no_pattern"))

    def test_interpret_stock_adjustment(self):
        body = self.interpret("add 20 ice tube").json()
        self.assertEqual(body["kind"], "stock_adjustment")
        self.assertTrue(body["applied"])
        self.assertEqual(body["new_stock"], 30)

    def test_interpret_rejects_bad_confidence(self):
        response = self.interpret("orders coke can 2", transcription_confidence=1.5)
        self.assertEqual(response.status_code, 422)

    def test_commit_and_cancel(self):
        body = self.interpret("Mr Somchai orders IceTube 60 quantity 2").json()
        self.assertTrue(body["verdict"]["auto"])
        response = self.client.post("/orders", json={"intent": body["intent"], "verdict": body["verdict"]})
        self.assertEqual(response.status_code, 200)
        order_id = response.json()["order_id"]
        self.assertEqual(response.json()["total"], 120)
        self.assertEqual(self.controller.cache.catalog.get("1").stock, 8)

        response = self.client.post(f"/orders/{order_id}/cancel")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), {"order_id": order_id, "cancelled": True})
        self.assertEqual(self.controller.cache.catalog.get("1").stock, 10)

        self.assertEqual(self.client.post(f"/orders/{order_id}/cancel").status_code, 404)
        self.assertEqual(self.client.post("/orders/999/cancel").status_code, 404)

        stats = self.client.get("/automation/stats").json()["stats"]
        self.assertEqual(stats["errors"], 1)

    def test_commit_without_verdict_is_not_auto(self):
        intent = self.interpret("Mr Somchai orders IceTube 60 quantity 2").json()["intent"]
        order_id = self.client.post("/orders", json={"intent": intent}).json()["order_id"]
        self.client.post(f"/orders/{order_id}/cancel")
        stats = self.client.get("/automation/stats").json()["stats"]
        self.assertEqual(stats["errors"], 0)

    def test_commit_empty_order_rejected(self):
        intent = {"customer": {"kind": "unspecified", "name": "unspecified"}, "items": []}
        response = self.client.post("/orders", json={"intent": intent})
        self.assertEqual(response.status_code, 422)

    def test_reload_and_stats(self):
        response = self.client.post("/cache/reload")
        self.assertEqual(response.json(), {"catalog_entries": 10, "customers": 3, "stale": False})

        self.interpret("Mr Somchai orders IceTube 60 quantity 2")
        stats = self.client.get("/automation/stats").json()
        self.assertEqual(stats["policy"], "balanced")
        self.assertEqual(stats["stats"]["total"], 1)
        self.assertEqual(stats["stats"]["auto_processed"], 1)


if __name__ == "__main__":
    unittest.main()
