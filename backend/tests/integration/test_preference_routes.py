"""
Integration tests for saved location and install-popup routes.
"""
from uuid import uuid4

import pytest

from conftest import auth_headers
from kmerbeauty.services.preferences_service import POPUP_DISMISSED_KEY, USER_LOCATION_KEY


@pytest.mark.integration
def test_location_defaults_to_empty(client):
    response = client.get("/me/location", headers=auth_headers(uuid4()))
    assert response.status_code == 200
    assert response.json() == {"query": "", "coords": None}


@pytest.mark.integration
def test_location_round_trip(client, repos):
    user_id = uuid4()
    body = {"query": "Akwa, Douala", "coords": {"lat": 4.05, "lon": 9.7}}

    assert client.put("/me/location", json=body, headers=auth_headers(user_id)).status_code == 200

    assert client.get("/me/location", headers=auth_headers(user_id)).json() == body
    assert repos.preferences.values[(user_id, USER_LOCATION_KEY)]["query"] == "Akwa, Douala"


@pytest.mark.integration
def test_corrupt_location_reads_as_empty(client, repos):
    user_id = uuid4()
    repos.preferences.values[(user_id, USER_LOCATION_KEY)] = {"coords": {"lat": "north"}}
    assert client.get("/me/location", headers=auth_headers(user_id)).json()["coords"] is None


@pytest.mark.integration
def test_install_popup_shown_then_dismissed(client, repos):
    user_id = uuid4()

    first = client.get("/me/install-popup", headers=auth_headers(user_id)).json()
    assert first["should_show"] is True

    dismissed = client.post("/me/install-popup/dismiss", headers=auth_headers(user_id)).json()
    assert dismissed == {"should_show": False, "dismissed": True, "last_shown": None}
    assert repos.preferences.values[(user_id, POPUP_DISMISSED_KEY)] is True

    later = client.get("/me/install-popup", headers=auth_headers(user_id)).json()
    assert later["should_show"] is False
    assert later["dismissed"] is True


@pytest.mark.integration
def test_preferences_require_token(client):
    assert client.get("/me/location").status_code == 401
    assert client.get("/me/install-popup").status_code == 401
