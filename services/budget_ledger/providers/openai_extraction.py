"""
OpenAI-powered quote extraction provider.

Sends the quote PDF as a base64 file part and forces a function call whose arguments
carry the seven optional quote fields. Amounts are coerced with the same Brazilian
currency parser the sheet uses, so "R$ 12.500,00" and 12500 land identically.
"""

from __future__ import annotations

import base64
import json
import logging
from typing import Any

from openai import APIError, APITimeoutError, OpenAI
from shared.observability.privacy import hash_payload

from budget_ledger.extraction_provider import ExtractionError, ExtractionRequest
from budget_ledger.models.extraction import ExtractedBudget

logger = logging.getLogger(__name__)

TOOL_NAME = "record_quote_fields"

# JSON schema for OpenAI function calling; every field is optional.
EXTRACTION_SCHEMA = {
    "type": "object",
    "properties": {
        "client_name": {
            "type": ["string", "null"],
            "description": "Main contracting client named in the quote.",
        },
        "service_description": {
            "type": ["string", "null"],
            "description": "Short summary of the service, keeping any PR code (e.g. 'Projeto Elétrico PR0930').",
        },
        "budget_amount": {
            "type": ["number", "string", "null"],
            "description": "Total quote value ('Total', 'Valor Bruto', 'R$'). Number only when possible.",
        },
        "date": {
            "type": ["string", "null"],
            "description": "Quote date as DD/MM/YYYY or YYYY-MM-DD.",
        },
        "discount": {
            "type": ["number", "string", "null"],
            "description": "Discount granted on the total, if any.",
        },
        "requester": {
            "type": ["string", "null"],
            "description": "Person who requested the quote on the client side.",
        },
        "order_number": {
            "type": ["string", "null"],
            "description": "Purchase order number ('PO:', 'Pedido:', 'Ordem de Compra:', 'Compra:').",
        },
    },
    "required": [],
}

SYSTEM_PROMPT = """Você é um especialista em orçamentos de engenharia.
Analise o documento fornecido e extraia os dados REAIS do orçamento:

1. Nome do cliente (o contratante principal).
2. Valor total do orçamento (procure por 'Total', 'Valor Bruto', 'R$'). Retorne apenas o número.
3. Número do pedido/PO (procure por 'PO:', 'Pedido:', 'Ordem de Compra:', 'Compra:').
4. Descrição resumida do serviço (ex.: Instalação de Drywall, Projeto Elétrico PR0930).
5. Data, desconto e solicitante, quando presentes.

Deixe em branco (null) qualquer campo que não aparece no documento. Nunca invente valores."""

USER_PROMPT_TEMPLATE = "Extraia os campos do orçamento no arquivo '{file_name}'."


class OpenAIExtractionProvider:
    """
    ChatGPT-backed provider that reads quote fields from a PDF.

    Unlike the deterministic provider this one can fail; any API error, missing tool
    call or malformed argument payload surfaces as ExtractionError.
    """

    name = "openai"

    def __init__(self, settings: Any):
        if settings is None or settings.openai is None:
            raise ValueError("OpenAIExtractionProvider requires ProviderSettings with an OpenAI config")
        self._settings = settings
        self._client = OpenAI(
            api_key=settings.openai.api_key,
            base_url=settings.openai.api_base,
            timeout=settings.timeout_seconds,
        )
        self._model = settings.openai.model
        self._temperature = settings.temperature
        self._max_tokens = settings.max_output_tokens

    def extract(self, request: ExtractionRequest) -> ExtractedBudget:
        encoded = base64.b64encode(request.content).decode("ascii")
        logger.info(
            {
                "event": "openai_extraction_request",
                "provider": self.name,
                "model": self._model,
                "file_name": request.file_name,
                "document_hash": hash_payload(request.content),
                "document_bytes": len(request.content),
            }
        )

        try:
            response = self._client.chat.completions.create(
                model=self._model,
                messages=[
                    {"role": "system", "content": SYSTEM_PROMPT},
                    {
                        "role": "user",
                        "content": [
                            {"type": "text", "text": USER_PROMPT_TEMPLATE.format(file_name=request.file_name)},
                            {
                                "type": "file",
                                "file": {
                                    "filename": request.file_name,
                                    "file_data": f"data:{request.mime_type};base64,{encoded}",
                                },
                            },
                        ],
                    },
                ],
                tools=[
                    {
                        "type": "function",
                        "function": {
                            "name": TOOL_NAME,
                            "description": "Record the fields found in the quote document.",
                            "parameters": EXTRACTION_SCHEMA,
                        },
                    }
                ],
                tool_choice={"type": "function", "function": {"name": TOOL_NAME}},
                temperature=self._temperature,
                max_tokens=self._max_tokens,
            )
        except (APIError, APITimeoutError) as exc:
            logger.error(
                {
                    "event": "openai_extraction_error",
                    "provider": self.name,
                    "file_name": request.file_name,
                    "error_type": type(exc).__name__,
                }
            )
            raise ExtractionError(f"OpenAI request failed for '{request.file_name}': {type(exc).__name__}") from exc

        if not response.choices:
            logger.warning({"event": "openai_no_choices", "provider": self.name, "file_name": request.file_name})
            raise ExtractionError(f"OpenAI returned no choices for '{request.file_name}'")

        tool_calls = response.choices[0].message.tool_calls
        if not tool_calls:
            logger.warning({"event": "openai_no_tool_calls", "provider": self.name, "file_name": request.file_name})
            raise ExtractionError(f"OpenAI returned no tool call for '{request.file_name}'")

        try:
            parsed = json.loads(tool_calls[0].function.arguments)
        except json.JSONDecodeError as exc:
            logger.error(
                {
                    "event": "openai_json_parse_error",
                    "provider": self.name,
                    "file_name": request.file_name,
                    "error_message": str(exc),
                }
            )
            raise ExtractionError(f"OpenAI returned malformed arguments for '{request.file_name}'") from exc

        if not isinstance(parsed, dict):
            raise ExtractionError(f"OpenAI returned non-object arguments for '{request.file_name}'")

        extracted = ExtractedBudget.from_payload(parsed)
        logger.info(
            {
                "event": "openai_extraction_response",
                "provider": self.name,
                "file_name": request.file_name,
                "fields_found": sorted(key for key, value in parsed.items() if value not in (None, "")),
                "response_hash": hash_payload(parsed),
            }
        )
        return extracted
