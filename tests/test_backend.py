from unittest.mock import MagicMock, patch

import pytest
import requests

from navcopilot.backend import GoogleMapsClient
from navcopilot.config import NavigationConfig
from navcopilot.errors import BackendUnavailable, NoResult
from navcopilot.geometry import GeoPoint

ORIGIN = GeoPoint(21.1904, 81.2849)
DESTINATION = GeoPoint(21.2, 81.3)


def make_response(payload=None, status_code=200):
    response = MagicMock()
    response.status_code = status_code
    response.json.return_value = payload
    if status_code >= 400:
        response.raise_for_status.side_effect = requests.exceptions.HTTPError(
            f"{status_code} Error", response=response
        )
    else:
        response.raise_for_status.return_value = None
    return response


def make_client(*responses, **config_overrides):
    session = MagicMock()
    session.get.side_effect = list(responses)
    config = NavigationConfig(api_key="test-key", **config_overrides)
    return GoogleMapsClient(config, session=session), session


def test_ok_payload_is_returned():
    payload = {"status": "OK", "routes": []}
    client, session = make_client(make_response(payload))

    assert client.directions(ORIGIN, DESTINATION) == payload
    _, kwargs = session.get.call_args
    assert kwargs["params"]["key"] == "test-key"
    assert kwargs["params"]["origin"] == "21.1904,81.2849"
    assert kwargs["params"]["alternatives"] == "false"
    assert "departure_time" not in kwargs["params"]


def test_live_traffic_parameters():
    client, session = make_client(make_response({"status": "OK", "routes": []}))

    client.directions(ORIGIN, DESTINATION, alternatives=True, live_traffic=True)

    params = session.get.call_args[1]["params"]
    assert params["departure_time"] == "now"
    assert params["traffic_model"] == "best_guess"
    assert params["alternatives"] == "true"


@patch("navcopilot.backend.time.sleep")
def test_server_error_is_retried(mock_sleep):
    client, session = make_client(
        make_response(status_code=503),
        make_response(status_code=429),
        make_response({"status": "OK", "results": []}),
    )

    assert client.nearby_search(ORIGIN, 3000, "school")["status"] == "OK"
    assert session.get.call_count == 3
    assert [c.args[0] for c in mock_sleep.call_args_list] == [2.0, 4.0]


@patch("navcopilot.backend.time.sleep")
def test_retry_budget_exhausted(mock_sleep):
    client, session = make_client(
        make_response(status_code=500),
        make_response(status_code=500),
        max_retries=1,
    )

    with pytest.raises(BackendUnavailable) as excinfo:
        client.geocode("Civic Centre")
    assert excinfo.value.status == "500"
    assert session.get.call_count == 2
    mock_sleep.assert_called_once()


@patch("navcopilot.backend.time.sleep")
def test_zero_max_retries_fails_fast(mock_sleep):
    client, session = make_client(make_response(status_code=503))

    with pytest.raises(BackendUnavailable):
        client.directions(ORIGIN, DESTINATION, live_traffic=True, max_retries=0)
    assert session.get.call_count == 1
    mock_sleep.assert_not_called()


def test_client_error_is_not_retried():
    client, session = make_client(make_response(status_code=403))

    with pytest.raises(BackendUnavailable):
        client.autocomplete("Bhil")
    assert session.get.call_count == 1


def test_connection_error_is_unavailable():
    client, _ = make_client(requests.exceptions.ConnectionError("refused"))

    with pytest.raises(BackendUnavailable, match="Could not reach"):
        client.directions(ORIGIN, DESTINATION)


def test_invalid_json_is_unavailable():
    response = make_response()
    response.json.side_effect = ValueError("Expecting value")
    client, _ = make_client(response)

    with pytest.raises(BackendUnavailable, match="not JSON"):
        client.place_details("abc")


def test_zero_results_raise_no_result():
    client, _ = make_client(make_response({"status": "ZERO_RESULTS", "results": []}))

    with pytest.raises(NoResult):
        client.nearby_search(ORIGIN, 3000, "market")


def test_no_result_is_a_backend_unavailable():
    """Callers that degrade on BackendUnavailable also degrade on NoResult."""
    assert issubclass(NoResult, BackendUnavailable)


def test_denied_status_carries_message():
    client, _ = make_client(
        make_response({"status": "REQUEST_DENIED", "error_message": "The provided API key is invalid."})
    )

    with pytest.raises(BackendUnavailable) as excinfo:
        client.directions(ORIGIN, DESTINATION)
    assert excinfo.value.status == "REQUEST_DENIED"
    assert "API key is invalid" in str(excinfo.value)


def test_missing_api_key_warns(caplog):
    with caplog.at_level("WARNING", logger="navcopilot.backend"):
        GoogleMapsClient(NavigationConfig(api_key=""), session=MagicMock())
    assert "No maps API key" in caplog.text
