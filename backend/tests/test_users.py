from __future__ import annotations

from invoicegen.services.users import merge_user_settings

from conftest import auth_headers


def test_get_settings_defaults(client, headers):
    response = client.get("/api/users/settings", headers=headers)
    assert response.status_code == 200
    assert response.json() == {
        "sender": {"name": "", "address": "", "city": "", "postalCode": "", "country": ""},
        "logoUrl": "",
    }


def test_put_settings_merges_sender_fields(client, headers):
    first = client.put(
        "/api/users/settings",
        json={"settings": {"sender": {"name": "Me Ltd", "city": "Town"}, "logoUrl": "https://example.com/a.png"}},
        headers=headers,
    )
    assert first.status_code == 200, first.text

    second = client.put("/api/users/settings", json={"settings": {"sender": {"postalCode": "12345"}}}, headers=headers)
    data = second.json()
    assert data["sender"]["name"] == "Me Ltd"
    assert data["sender"]["city"] == "Town"
    assert data["sender"]["postalCode"] == "12345"
    assert data["logoUrl"] == "https://example.com/a.png"

    assert client.get("/api/users/settings", headers=headers).json() == data


def test_new_invoice_uses_saved_sender(client, headers):
    client.put(
        "/api/users/settings",
        json={"settings": {"sender": {"name": "Me Ltd", "country": "NL"}}},
        headers=headers,
    )
    response = client.post(
        "/api/invoices",
        json={"recipient": {"name": "Client"}, "items": [{"description": "Work", "quantity": 1, "unitPrice": 10}]},
        headers=headers,
    )
    assert response.status_code == 201, response.text
    assert response.json()["sender"]["name"] == "Me Ltd"
    assert response.json()["sender"]["country"] == "NL"


def test_settings_not_gated_by_verification(client, make_user):
    unverified = auth_headers(make_user(email="fresh@example.com", verified=False))
    assert client.get("/api/users/settings", headers=unverified).status_code == 200


def test_merge_user_settings_without_existing():
    merged = merge_user_settings(None, {"logoUrl": "x.png"})
    assert merged["logoUrl"] == "x.png"
    assert merged["sender"]["name"] == ""


def test_put_settings_rejects_nulls_and_keeps_stored_values(client, headers):
    client.put("/api/users/settings", json={"settings": {"sender": {"name": "Me Ltd"}}}, headers=headers)

    response = client.put(
        "/api/users/settings",
        json={"settings": {"sender": {"name": None}, "logoUrl": None}},
        headers=headers,
    )
    assert response.status_code == 422

    stored = client.get("/api/users/settings", headers=headers)
    assert stored.status_code == 200
    assert stored.json()["sender"]["name"] == "Me Ltd"
    assert stored.json()["logoUrl"] == ""

    created = client.post(
        "/api/invoices",
        json={"recipient": {"name": "Client"}, "items": [{"description": "Work", "quantity": 1, "unitPrice": 10}]},
        headers=headers,
    )
    assert created.status_code == 201
    assert created.json()["sender"]["name"] == "Me Ltd"


def test_merge_user_settings_skips_none_values():
    current = {"sender": {"name": "Me Ltd", "city": "Town"}, "logoUrl": "a.png"}
    merged = merge_user_settings(current, {"sender": {"name": None, "city": "City"}, "logoUrl": None})
    assert merged["sender"] == {"name": "Me Ltd", "city": "City"}
    assert merged["logoUrl"] == "a.png"
