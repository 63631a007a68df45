# Overview: Request payload validation for catalog writes.

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from sqlalchemy import Boolean, Integer, String, Text


MAX_PRICE_CENTS = 999_999_999
MAX_STOCK_QUANTITY = 10_000_000


class ValidationError(ValueError):
    """400-level input problem."""


def _as_int(key: str, value: Any) -> int:
    # JSON true/false must not pass as 1/0
    if isinstance(value, bool):
        raise ValidationError(f"{key} must be an integer")
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip().lstrip("-").isdigit():
        return int(value.strip())
    raise ValidationError(f"{key} must be an integer")


def _as_bool(key: str, value: Any) -> bool:
    if isinstance(value, bool):
        return value
    raise ValidationError(f"{key} must be true or false")


def _as_text(key: str, value: Any, *, max_length: int | None, nullable: bool) -> str:
    if not isinstance(value, (str, int, float)) or isinstance(value, bool):
        raise ValidationError(f"{key} must be a string")
    text = str(value).strip()
    if not text and not nullable:
        raise ValidationError(f"{key} cannot be blank")
    if max_length and len(text) > max_length:
        raise ValidationError(f"{key} exceeds max length {max_length}")
    return text


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    Which columns of a model a client may write.

    Types, nullability and string lengths are read from the model's column
    metadata, so the policy only lists field names.
    """
    model: Any
    writable_fields: frozenset
    required_on_create: frozenset = field(default_factory=frozenset)

    def clean(self, payload, *, partial: bool) -> dict:
        """
        Validate and normalize a JSON body.

        partial=False enforces required_on_create (create); partial=True
        only checks the keys present (patch). Returns the cleaned patch.
        """
        if payload is None:
            payload = {}
        if not isinstance(payload, dict):
            raise ValidationError("Invalid JSON payload")

        if not partial:
            missing = sorted(self.required_on_create.difference(payload))
            if missing:
                raise ValidationError(f"Missing required fields: {', '.join(missing)}")

        columns = {c.key: c for c in self.model.__mapper__.columns}
        patch: dict = {}
        for key, raw in payload.items():
            if key not in self.writable_fields or key not in columns:
                raise ValidationError(f"Field not allowed: {key}")
            col = columns[key]

            if raw is None:
                if not col.nullable:
                    raise ValidationError(f"{key} cannot be null")
                patch[key] = None
            elif isinstance(col.type, Integer):
                patch[key] = _as_int(key, raw)
            elif isinstance(col.type, Boolean):
                patch[key] = _as_bool(key, raw)
            elif isinstance(col.type, (String, Text)):
                patch[key] = _as_text(
                    key, raw,
                    max_length=getattr(col.type, "length", None),
                    nullable=col.nullable,
                )
            else:
                patch[key] = raw
        return patch


def enforce_rules_product(patch: dict) -> None:
    """Bounds for product prices and stock figures."""
    price = patch.get("price_cents")
    if "price_cents" in patch and (price is None or not 0 < price <= MAX_PRICE_CENTS):
        raise ValidationError(f"price_cents must be between 1 and {MAX_PRICE_CENTS}")

    for key in ("quantity_on_hand", "low_stock_threshold"):
        value = patch.get(key)
        if value is None:
            continue
        if value < 0:
            raise ValidationError(f"{key} must be >= 0")
        if value > MAX_STOCK_QUANTITY:
            raise ValidationError(f"{key} cannot exceed {MAX_STOCK_QUANTITY}")
