"""AI-backed field cleaner: E.164 phone numbers and structured addresses."""
from __future__ import annotations

import json
import logging
import os
import time
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Dict, List, Optional, Sequence, Tuple

from openai import OpenAI, OpenAIError

from common.errors import BackendError, ErrorCode
from common.models import EnrichmentOutcome, EnrichmentSettings, Record
from .base import RowConsumer

logger = logging.getLogger(__name__)

ADDRESS_COLUMNS = ("streetAddress", "city", "state", "zipCode")

PHONE_SYSTEM_PROMPT = (
    "You are a helpful assistant that cleans phone numbers. Format numbers as standardized "
    "E.164 international format when possible (e.g. +12125551234). If the number is invalid "
    "or cannot be parsed, return null for the phone field."
)
ADDRESS_SYSTEM_PROMPT = (
    "You are a helpful assistant that extracts information from addresses. Return the street "
    "address, city, state, and zip code in a JSON object. If any of the fields cannot be "
    "parsed, return null for that field."
)

PHONE_RESPONSE_FORMAT: Dict[str, Any] = {
    "type": "json_schema",
    "json_schema": {
        "name": "phone_number_response",
        "strict": True,
        "schema": {
            "type": "object",
            "properties": {
                "phone": {
                    "type": ["string", "null"],
                    "description": "The cleaned phone number in E.164 format or null if invalid",
                }
            },
            "required": ["phone"],
            "additionalProperties": False,
        },
    },
}

ADDRESS_RESPONSE_FORMAT: Dict[str, Any] = {
    "type": "json_schema",
    "json_schema": {
        "name": "address_response",
        "strict": True,
        "schema": {
            "type": "object",
            "properties": {
                "streetAddress": {"type": ["string", "null"], "description": "e.g. 123 Main St"},
                "city": {"type": ["string", "null"], "description": "e.g. San Francisco"},
                "state": {"type": ["string", "null"], "description": "e.g. CA"},
                "zipCode": {"type": ["string", "null"], "description": "e.g. 94101"},
            },
            "required": list(ADDRESS_COLUMNS),
            "additionalProperties": False,
        },
    },
}

_Response = Tuple[Dict[str, Optional[str]], int, int]


class OpenAIFieldCleaner(RowConsumer):
    """Cleans ``phone`` and splits ``address`` with two chat completions per record.

    Requests for a batch run concurrently on a thread pool; the call returns
    once every request of the batch has finished. A failed request or an
    unparseable response marks the record failed and leaves it to the
    caller's failure policy.
    """

    def __init__(
        self,
        client: Any,
        settings: Optional[EnrichmentSettings] = None,
        *,
        max_workers: int = 8,
    ) -> None:
        super().__init__()
        self.client = client
        self.settings = settings or EnrichmentSettings()
        self.max_workers = max(1, max_workers)

    @classmethod
    def from_environment(
        cls,
        settings: Optional[EnrichmentSettings] = None,
        *,
        max_workers: int = 8,
    ) -> "OpenAIFieldCleaner":
        if not os.getenv("OPENAI_API_KEY"):
            raise BackendError(
                ErrorCode.CONFIG_ERROR,
                "OPENAI_API_KEY is not set; add it to the environment or a .env file",
            )
        return cls(OpenAI(), settings, max_workers=max_workers)

    def output_columns(self, header: Sequence[str]) -> List[str]:
        columns = [name for name in header if name != self.settings.address_field]
        if self.settings.phone_field not in columns:
            columns.append(self.settings.phone_field)
        columns.extend(name for name in ADDRESS_COLUMNS if name not in columns)
        return columns

    def process(self, records: Sequence[Record]) -> List[EnrichmentOutcome]:
        if not records:
            return []
        start = time.perf_counter()
        with ThreadPoolExecutor(max_workers=self.max_workers) as pool:
            phone_futures = [
                pool.submit(self._clean_phone, record.get(self.settings.phone_field) or "")
                for record in records
            ]
            address_futures = [
                pool.submit(self._clean_address, record.get(self.settings.address_field) or "")
                for record in records
            ]
            outcomes = [
                self._merge(record, phone, address)
                for record, phone, address in zip(records, phone_futures, address_futures)
            ]
        elapsed = time.perf_counter() - start
        self.usage.elapsed_seconds += elapsed
        logger.info(
            "Enriched %d record(s) in %.2fs (%d prompt / %d completion tokens so far)",
            len(records),
            elapsed,
            self.usage.prompt_tokens,
            self.usage.completion_tokens,
        )
        return outcomes

    def _merge(
        self,
        record: Record,
        phone_future: "Future[_Response]",
        address_future: "Future[_Response]",
    ) -> EnrichmentOutcome:
        self.usage.requests += 2
        try:
            phone, phone_prompt, phone_completion = phone_future.result()
            address, address_prompt, address_completion = address_future.result()
        except (OpenAIError, ValueError, LookupError, TypeError) as exc:
            self.usage.failed_records += 1
            logger.warning("Enrichment failed for record: %s", exc)
            return EnrichmentOutcome(ok=False, error=str(exc))

        prompt_tokens = phone_prompt + address_prompt
        completion_tokens = phone_completion + address_completion
        self.usage.prompt_tokens += prompt_tokens
        self.usage.completion_tokens += completion_tokens

        cleaned: Record = dict(record)
        cleaned.pop(self.settings.address_field, None)
        cleaned[self.settings.phone_field] = phone["phone"]
        for name in ADDRESS_COLUMNS:
            cleaned[name] = address[name]
        return EnrichmentOutcome(
            record=cleaned,
            prompt_tokens=prompt_tokens,
            completion_tokens=completion_tokens,
        )

    def _clean_phone(self, phone: str) -> _Response:
        return self._complete(
            PHONE_SYSTEM_PROMPT,
            f"Clean this phone number: {phone}",
            PHONE_RESPONSE_FORMAT,
            ("phone",),
        )

    def _clean_address(self, address: str) -> _Response:
        return self._complete(
            ADDRESS_SYSTEM_PROMPT,
            "Extract the street address, city, state, and zip code from the following "
            f"address: {address}",
            ADDRESS_RESPONSE_FORMAT,
            ADDRESS_COLUMNS,
        )

    def _complete(
        self,
        system_prompt: str,
        user_prompt: str,
        response_format: Dict[str, Any],
        keys: Sequence[str],
    ) -> _Response:
        response = self.client.chat.completions.create(
            model=self.settings.model,
            temperature=self.settings.temperature,
            response_format=response_format,
            messages=[
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
        )
        content = response.choices[0].message.content or json.dumps({key: None for key in keys})
        payload = json.loads(content)
        if not isinstance(payload, dict):
            raise ValueError(f"Expected a JSON object, got {type(payload).__name__}")
        missing = [key for key in keys if key not in payload]
        if missing:
            raise ValueError(f"Response missing keys {missing}")
        usage = getattr(response, "usage", None)
        prompt_tokens = getattr(usage, "prompt_tokens", 0) or 0
        completion_tokens = getattr(usage, "completion_tokens", 0) or 0
        return {key: payload[key] for key in keys}, prompt_tokens, completion_tokens
