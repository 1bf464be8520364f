"""
Tests for the HTTP synthesis client
Run with: pytest tests/test_synthesis.py -v
"""

import asyncio
import os
from unittest.mock import MagicMock, patch

import pytest
import requests

from betsmart.core.errors import SynthesisError
from betsmart.services.synthesis import (
    HttpSynthesisClient,
    SynthesisResponse,
    client_from_env,
)

URL = "https://synthesis.example.com/debate"

GOOD_BODY = {
    "finalPick": "away",
    "adjustedConfidence": 61.5,
    "reasoning": "Value on the road side; model overrates home court.",
    "biasesIdentified": ["home bias"],
    "agreementLevel": "split",
}


def mock_response(body=None, json_error=None, http_error=None):
    response = MagicMock()
    if http_error is not None:
        response.raise_for_status.side_effect = http_error
    if json_error is not None:
        response.json.side_effect = json_error
    else:
        response.json.return_value = body
    return response


@pytest.fixture
def client():
    return HttpSynthesisClient(url=URL, api_key="secret", timeout=2.0)


class TestSynthesisResponse:

    def test_accepts_camel_case(self):
        parsed = SynthesisResponse.model_validate(GOOD_BODY)

        assert parsed.final_pick == "away"
        assert parsed.biases_identified == ["home bias"]

    def test_to_result(self):
        result = SynthesisResponse.model_validate(GOOD_BODY).to_result()

        assert result.adjusted_confidence == 61.5
        assert result.biases_identified == ("home bias",)
        assert result.risk_flag is None

    def test_empty_risk_flag_becomes_none(self):
        body = dict(GOOD_BODY, riskFlag="")
        assert SynthesisResponse.model_validate(body).to_result().risk_flag is None


class TestHttpSynthesisClient:

    @patch("betsmart.services.synthesis.requests.post")
    def test_success(self, mock_post, client):
        mock_post.return_value = mock_response(GOOD_BODY)

        result = asyncio.run(client.synthesize({"matchTitle": "UNC @ Duke"}))

        assert result.final_pick == "away"
        assert result.agreement_level == "split"
        _, kwargs = mock_post.call_args
        assert kwargs["timeout"] == 2.0
        assert kwargs["json"] == {"matchTitle": "UNC @ Duke"}
        assert kwargs["headers"]["Authorization"] == "Bearer secret"

    @patch("betsmart.services.synthesis.requests.post")
    def test_no_auth_header_without_key(self, mock_post):
        mock_post.return_value = mock_response(GOOD_BODY)
        with patch("betsmart.services.synthesis.SYNTHESIS_API_KEY", None):
            client = HttpSynthesisClient(url=URL)

        asyncio.run(client.synthesize({}))

        _, kwargs = mock_post.call_args
        assert "Authorization" not in kwargs["headers"]

    @patch("betsmart.services.synthesis.requests.post")
    def test_transport_error(self, mock_post, client):
        mock_post.side_effect = requests.exceptions.ConnectionError("refused")

        with pytest.raises(SynthesisError):
            asyncio.run(client.synthesize({}))

    @patch("betsmart.services.synthesis.requests.post")
    def test_http_error_status(self, mock_post, client):
        mock_post.return_value = mock_response(
            GOOD_BODY, http_error=requests.exceptions.HTTPError("502 Bad Gateway")
        )

        with pytest.raises(SynthesisError, match="502"):
            asyncio.run(client.synthesize({}))

    @patch("betsmart.services.synthesis.requests.post")
    def test_non_json_body(self, mock_post, client):
        mock_post.return_value = mock_response(json_error=ValueError("Expecting value"))

        with pytest.raises(SynthesisError):
            asyncio.run(client.synthesize({}))

    @patch("betsmart.services.synthesis.requests.post")
    def test_non_object_body(self, mock_post, client):
        mock_post.return_value = mock_response(["home"])

        with pytest.raises(SynthesisError, match="JSON object"):
            asyncio.run(client.synthesize({}))

    @pytest.mark.parametrize("body", [
        {"finalPick": "over", "adjustedConfidence": 60, "reasoning": "x"},
        {"finalPick": "home", "adjustedConfidence": 160, "reasoning": "x"},
        {"finalPick": "home", "adjustedConfidence": 60, "reasoning": ""},
        {"adjustedConfidence": 60, "reasoning": "x"},
    ])
    @patch("betsmart.services.synthesis.requests.post")
    def test_malformed_body(self, mock_post, body, client):
        mock_post.return_value = mock_response(body)

        with pytest.raises(SynthesisError, match="Malformed"):
            asyncio.run(client.synthesize({}))

    def test_requires_url(self):
        with patch("betsmart.services.synthesis.SYNTHESIS_URL", None):
            with pytest.raises(ValueError):
                HttpSynthesisClient()


class TestClientFromEnv:

    def test_none_without_url(self):
        with patch.dict(os.environ, {}, clear=True):
            assert client_from_env() is None

    def test_built_with_url(self):
        with patch.dict(os.environ, {"SYNTHESIS_URL": URL}):
            client = client_from_env()

        assert isinstance(client, HttpSynthesisClient)
        assert client.url == URL
