#!/usr/bin/env python3
"""
CLOUD SYNC - Optional JSONBin mirror of the evaluation records

Best effort by contract: every failure is logged and reported as
False (save) or None (load). Nothing here raises into the caller.

Bin lifecycle:
- No bin id configured -> POST creates a bin, its id is kept on the client
- PUT answered 400/401/404 -> the bin is recreated with POST
- Transport errors are retried SYNC_RETRIES times before giving up
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence

import httpx

from evaluation_models import EvaluationRecord
from evaluation_settings import DEFAULT_BIN_ID, settings
from evaluation_store import record_to_dict, records_from_dicts

logger = logging.getLogger(__name__)

RECREATE_STATUSES = {400, 401, 404}


class JSONBinSyncClient:
    def __init__(
        self,
        bin_id: Optional[str] = None,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        retries: Optional[int] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.bin_id = bin_id if bin_id is not None else settings.JSONBIN_BIN_ID
        self.api_key = api_key if api_key is not None else settings.JSONBIN_API_KEY
        self.base = (base_url or settings.JSONBIN_BASE_URL).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.SYNC_TIMEOUT
        self.retries = retries if retries is not None else settings.SYNC_RETRIES
        self.bin_name = settings.JSONBIN_BIN_NAME
        self.transport = transport

    @property
    def configured(self) -> bool:
        return bool(self.bin_id) and self.bin_id != DEFAULT_BIN_ID

    def _request(self, method: str, url: str, **kwargs) -> Optional[httpx.Response]:
        attempts = self.retries + 1
        for attempt in range(1, attempts + 1):
            try:
                with httpx.Client(timeout=self.timeout, transport=self.transport) as client:
                    return client.request(method, url, **kwargs)
            except httpx.TransportError as e:
                logger.warning(f"⚠️ JSONBin {method} failed (attempt {attempt}/{attempts}): {e}")
        logger.error(f"❌ JSONBin {method} {url} unreachable after {attempts} attempts")
        return None

    def _payload(self, records: Sequence[EvaluationRecord]) -> Dict[str, Any]:
        return {
            "datos": [record_to_dict(r) for r in records],
            "lastUpdated": datetime.now(timezone.utc).isoformat(),
            "totalRecords": len(records),
        }

    def _create_bin(self, payload: Dict[str, Any]) -> bool:
        headers = {
            "X-Master-Key": self.api_key,
            "X-Bin-Name": self.bin_name,
            "X-Bin-Private": "false",
        }
        response = self._request("POST", self.base, json=payload, headers=headers)
        if response is None:
            return False
        if not response.is_success:
            logger.error(f"❌ JSONBin bin creation failed ({response.status_code}): {response.text}")
            return False

        try:
            new_id = response.json().get("metadata", {}).get("id")
        except ValueError:
            new_id = None
        if new_id:
            self.bin_id = new_id
            logger.info(f"✅ New JSONBin bin created: {new_id} (set TOC_JSONBIN_BIN_ID to keep using it)")
        else:
            logger.warning("⚠️ Bin created but the response carried no id")
        return True

    def save(self, records: Sequence[EvaluationRecord]) -> bool:
        """Mirror the whole collection to the bin"""
        if not self.api_key:
            logger.warning("⚠️ JSONBin API key not configured; data kept locally only")
            return False

        payload = self._payload(records)
        if not self.configured:
            logger.info("Creating new JSONBin bin...")
            return self._create_bin(payload)

        headers = {"X-Master-Key": self.api_key, "X-Bin-Versioning": "false"}
        response = self._request("PUT", f"{self.base}/{self.bin_id}", json=payload, headers=headers)
        if response is None:
            return False

        if response.status_code in RECREATE_STATUSES:
            logger.warning(f"⚠️ Bin {self.bin_id} rejected ({response.status_code}); creating a new one")
            return self._create_bin(payload)

        if not response.is_success:
            logger.error(f"❌ JSONBin error ({response.status_code}): {response.text}")
            return False

        logger.info(f"☁️ Saved {len(records)} records to JSONBin")
        return True

    def load(self) -> Optional[List[EvaluationRecord]]:
        """Latest records from the bin, or None when unavailable"""
        if not self.configured:
            return None

        headers = {"X-Bin-Meta": "false"}
        if self.api_key:
            headers["X-Master-Key"] = self.api_key

        response = self._request("GET", f"{self.base}/{self.bin_id}/latest", headers=headers)
        if response is None:
            return None
        if response.status_code in RECREATE_STATUSES:
            logger.info(f"No JSONBin data available ({response.status_code})")
            return None
        if not response.is_success:
            logger.error(f"❌ JSONBin error ({response.status_code}): {response.text}")
            return None

        try:
            data = response.json()
        except ValueError as e:
            logger.error(f"❌ JSONBin returned invalid JSON: {e}")
            return None

        items = extract_records(data)
        if items is None:
            logger.warning("⚠️ Unrecognized JSONBin data format")
            return None

        records = records_from_dicts(items)
        logger.info(f"☁️ Loaded {len(records)} records from JSONBin")
        return records


def extract_records(data: Any) -> Optional[list]:
    """Locate the record array in the shapes JSONBin has returned"""
    if isinstance(data, dict):
        record = data.get("record")
        if isinstance(record, dict) and isinstance(record.get("datos"), list):
            return record["datos"]
        if isinstance(record, list):
            return record
        if isinstance(data.get("datos"), list):
            return data["datos"]
        return None
    if isinstance(data, list):
        return data
    return None
