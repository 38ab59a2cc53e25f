"""schema.py — Movies table schema and upsert-by-key persistence.

CatalogEntry items are keyed by ``year`` (partition, N) and ``title``
(sort, S). The only write is an unconditional ``put_item``: a second write
for the same key replaces the whole item (last write wins).
"""
from __future__ import annotations

import math
import numbers
from dataclasses import dataclass, field
from decimal import Decimal, DecimalException, InvalidOperation
from typing import Any, Dict, Optional

from botocore.exceptions import BotoCoreError, ClientError

from movies_api.config import logger
from movies_api.errors import AuthorizationDenied, StorageError, ValidationError
from movies_api.serialization import _deserialize, _serialize, _serialize_item

__all__ = [
    "CatalogEntry",
    "MovieTable",
    "PARTITION_KEY",
    "SORT_KEY",
    "TABLE_DEFINITION",
]

PARTITION_KEY = "year"
SORT_KEY = "title"

# Key schema shared by the runtime and the rendered CloudFormation table.
TABLE_DEFINITION: Dict[str, Any] = {
    "BillingMode": "PAY_PER_REQUEST",
    "AttributeDefinitions": [
        {"AttributeName": PARTITION_KEY, "AttributeType": "N"},
        {"AttributeName": SORT_KEY, "AttributeType": "S"},
    ],
    "KeySchema": [
        {"AttributeName": PARTITION_KEY, "KeyType": "HASH"},
        {"AttributeName": SORT_KEY, "KeyType": "RANGE"},
    ],
}


def _coerce_year(raw: Any) -> int:
    if isinstance(raw, bool) or raw is None:
        raise ValidationError("year must be a number", details={"field": PARTITION_KEY})
    if isinstance(raw, numbers.Number):
        value = Decimal(str(raw))
    elif isinstance(raw, str):
        try:
            value = Decimal(raw.strip())
        except InvalidOperation:
            raise ValidationError("year must be a number", details={"field": PARTITION_KEY})
    else:
        raise ValidationError("year must be a number", details={"field": PARTITION_KEY})
    if not value.is_finite() or value != value.to_integral_value():
        raise ValidationError("year must be a whole number", details={"field": PARTITION_KEY})
    return int(value)


def _is_finite(value: Any) -> bool:
    if isinstance(value, float):
        return math.isfinite(value)
    if isinstance(value, Decimal):
        return value.is_finite()
    if isinstance(value, dict):
        return all(_is_finite(v) for v in value.values())
    if isinstance(value, (list, tuple, set)):
        return all(_is_finite(v) for v in value)
    return True


def _check_storable(name: str, value: Any) -> None:
    # DynamoDB numbers: 38 significant digits, magnitude 1E-130 to 1E+126, finite only.
    if not _is_finite(value):
        raise ValidationError(f"{name} must not contain NaN or Infinity", details={"field": name})
    try:
        _serialize(value)
    except (TypeError, DecimalException) as exc:
        raise ValidationError(
            f"{name} cannot be stored: {type(exc).__name__}",
            details={"field": name},
        ) from exc


@dataclass(frozen=True)
class CatalogEntry:
    year: int
    title: str
    attributes: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "CatalogEntry":
        """Validate a request payload; extra fields are kept as attributes."""
        if not isinstance(payload, dict):
            raise ValidationError("Movie payload must be a JSON object")
        if PARTITION_KEY not in payload:
            raise ValidationError("year is required", details={"field": PARTITION_KEY})
        year = _coerce_year(payload[PARTITION_KEY])

        title = payload.get(SORT_KEY)
        if not isinstance(title, str) or not title.strip():
            raise ValidationError("title must be a non-empty string", details={"field": SORT_KEY})

        extra = {k: v for k, v in payload.items() if k not in (PARTITION_KEY, SORT_KEY)}
        entry = cls(year=year, title=title, attributes=extra)
        for name, value in entry.to_item().items():
            _check_storable(name, value)
        return entry

    @property
    def key(self) -> Dict[str, Any]:
        return {PARTITION_KEY: self.year, SORT_KEY: self.title}

    def to_item(self) -> Dict[str, Any]:
        return {**self.attributes, **self.key}


class MovieTable:
    """Upsert-by-key access to the movies table.

    ``client`` is a DynamoDB client, normally the boundary-scoped one, so
    every call is authorized before it is sent.
    """

    def __init__(self, table_name: str, client: Any) -> None:
        self.table_name = table_name
        self._client = client

    def upsert(self, entry: CatalogEntry) -> CatalogEntry:
        try:
            self._client.put_item(TableName=self.table_name, Item=_serialize_item(entry.to_item()))
        except AuthorizationDenied:
            raise
        except ClientError as exc:
            code = exc.response.get("Error", {}).get("Code", "Unknown")
            if code == "AccessDeniedException":
                raise AuthorizationDenied("dynamodb:PutItem", self.table_name) from exc
            logger.error("[ERROR] put_item failed table=%s code=%s: %s", self.table_name, code, exc)
            raise StorageError(f"Failed to write movie: {code}", details={"aws_error_code": code}) from exc
        except BotoCoreError as exc:
            logger.error("[ERROR] put_item failed table=%s: %s", self.table_name, exc)
            raise StorageError(f"Failed to write movie: {exc}") from exc
        logger.info("[INFO] upserted movie year=%s title=%s", entry.year, entry.title)
        return entry

    def get_entry(self, year: int, title: str) -> Optional[Dict[str, Any]]:
        """Consistent read of one entry; used for verification, never routed."""
        try:
            resp = self._client.get_item(
                TableName=self.table_name,
                Key={PARTITION_KEY: _serialize(year), SORT_KEY: _serialize(title)},
                ConsistentRead=True,
            )
        except (ClientError, BotoCoreError) as exc:
            raise StorageError(f"Failed to read movie: {exc}") from exc
        raw = resp.get("Item")
        if not raw:
            return None
        return _deserialize(raw)
