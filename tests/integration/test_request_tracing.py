"""Integration tests covering request ID propagation and middleware."""

from __future__ import annotations

import logging

from tests.integration.utils import auth_headers


def test_request_id_echoed_when_provided(client, catalog):
    request_id = "test-request-123"
    headers = {**auth_headers(catalog.owner.id), "X-Request-ID": request_id}
    response = client.get("/lists", headers=headers)
    assert response.status_code == 200
    assert response.headers["X-Request-ID"] == request_id


def test_request_id_generated_when_missing(client):
    response = client.get("/lists")
    assert response.status_code == 401
    generated = response.headers.get("X-Request-ID")
    assert generated
    assert len(generated) >= 8


def test_access_log_carries_request_and_user(client, catalog, caplog):
    headers = {**auth_headers(catalog.owner.id), "X-Request-ID": "trace-me"}

    with caplog.at_level(logging.INFO, logger="larder.access"):
        client.get("/lists", headers=headers)

    records = [record for record in caplog.records if record.name == "larder.access"]
    assert records
    assert records[-1].request_id == "trace-me"
    assert records[-1].user_id == catalog.owner.id
