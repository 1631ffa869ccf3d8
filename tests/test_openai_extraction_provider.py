"""
Tests for the OpenAI extraction provider.

The OpenAI client is mocked so these exercise request construction and response
parsing without network access.
"""

from __future__ import annotations

import base64
import json
from typing import Any, Dict
from unittest.mock import MagicMock, patch

import pytest

from budget_ledger.extraction_provider import ExtractionError, ExtractionRequest, build_extraction_provider
from budget_ledger.providers.openai_extraction import TOOL_NAME, OpenAIExtractionProvider
from shared.provider_settings import OpenAIConfig, ProviderSettings


@pytest.fixture
def mock_settings() -> ProviderSettings:
    return ProviderSettings(
        provider_name="openai",
        timeout_seconds=30.0,
        temperature=0.0,
        max_output_tokens=512,
        openai=OpenAIConfig(api_key="test-api-key", model="gpt-4o-mini", api_base="https://api.openai.com/v1"),
    )


@pytest.fixture
def request_pdf() -> ExtractionRequest:
    return ExtractionRequest(content=b"%PDF-1.4 orcamento", file_name="PR01724-rev03.pdf")


def _completion(arguments: str | None) -> MagicMock:
    mock_choice = MagicMock()
    if arguments is None:
        mock_choice.message.tool_calls = []
    else:
        mock_tool_call = MagicMock()
        mock_tool_call.function.arguments = arguments
        mock_choice.message.tool_calls = [mock_tool_call]
    mock_completion = MagicMock()
    mock_completion.choices = [mock_choice]
    return mock_completion


class TestOpenAIExtractionProvider:
    def test_provider_parses_tool_call_arguments(self, mock_settings, request_pdf):
        provider = OpenAIExtractionProvider(settings=mock_settings)
        arguments: Dict[str, Any] = {
            "client_name": "Metalúrgica Vale Azul",
            "service_description": "Projeto Elétrico PR01724",
            "budget_amount": "R$ 42.300,50",
            "date": "05/03/2024",
            "discount": None,
            "requester": "",
            "order_number": "PO-88123",
        }

        with patch.object(
            provider._client.chat.completions, "create", return_value=_completion(json.dumps(arguments))
        ) as create:
            extracted = provider.extract(request_pdf)

        assert extracted.client_name == "Metalúrgica Vale Azul"
        assert extracted.budget_amount == pytest.approx(42300.5)
        assert extracted.discount is None
        assert extracted.requester is None
        assert extracted.order_number == "PO-88123"

        kwargs = create.call_args.kwargs
        assert kwargs["model"] == "gpt-4o-mini"
        assert kwargs["tool_choice"] == {"type": "function", "function": {"name": TOOL_NAME}}
        file_part = kwargs["messages"][1]["content"][1]
        assert file_part["type"] == "file"
        assert file_part["file"]["filename"] == "PR01724-rev03.pdf"
        encoded = file_part["file"]["file_data"].split("base64,", 1)[1]
        assert base64.b64decode(encoded) == b"%PDF-1.4 orcamento"

    def test_provider_raises_on_api_error(self, mock_settings, request_pdf):
        from httpx import Request, Response
        from openai import APIStatusError

        provider = OpenAIExtractionProvider(settings=mock_settings)
        mock_response = Response(429, request=Request("POST", "https://api.openai.com/v1/chat/completions"))

        with patch.object(
            provider._client.chat.completions,
            "create",
            side_effect=APIStatusError("Rate limit exceeded", response=mock_response, body=None),
        ):
            with pytest.raises(ExtractionError):
                provider.extract(request_pdf)

    def test_provider_raises_without_tool_calls(self, mock_settings, request_pdf):
        provider = OpenAIExtractionProvider(settings=mock_settings)

        with patch.object(provider._client.chat.completions, "create", return_value=_completion(None)):
            with pytest.raises(ExtractionError, match="no tool call"):
                provider.extract(request_pdf)

    def test_provider_raises_without_choices(self, mock_settings, request_pdf):
        provider = OpenAIExtractionProvider(settings=mock_settings)
        mock_completion = MagicMock()
        mock_completion.choices = []

        with patch.object(provider._client.chat.completions, "create", return_value=mock_completion):
            with pytest.raises(ExtractionError, match="no choices"):
                provider.extract(request_pdf)

    @pytest.mark.parametrize("arguments", ["not valid json {{", '["a", "list"]'])
    def test_provider_raises_on_malformed_arguments(self, mock_settings, request_pdf, arguments):
        provider = OpenAIExtractionProvider(settings=mock_settings)

        with patch.object(provider._client.chat.completions, "create", return_value=_completion(arguments)):
            with pytest.raises(ExtractionError):
                provider.extract(request_pdf)

    def test_factory_builds_openai_provider(self, mock_settings):
        provider = build_extraction_provider("openai", settings=mock_settings)

        assert isinstance(provider, OpenAIExtractionProvider)
        assert provider.name == "openai"

    def test_provider_requires_openai_config(self):
        settings = ProviderSettings(provider_name="openai", timeout_seconds=5.0, temperature=0.0, max_output_tokens=64)

        with pytest.raises(ValueError):
            OpenAIExtractionProvider(settings=settings)
