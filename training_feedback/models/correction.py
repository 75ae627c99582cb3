"""Correction data models: one typed payload per correction kind."""

from typing import Annotated, Any, Literal, TypeVar

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from training_feedback.constants import CorrectionKind
from training_feedback.exceptions import ValidationError


class CorrectionValue(BaseModel):
    """Base for the structured value on either side of a correction."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    confidence: float | None = Field(default=None, ge=0, le=1)


class DescriptionValue(CorrectionValue):
    text: str | None = None
    description: str | None = None


class CategoryValue(CorrectionValue):
    value: str | None = None


class PriceValue(CorrectionValue):
    # Exact figures are only present before anonymization; the *_range
    # fields replace them afterwards.
    total_price: float | None = None
    unit_price: float | None = None
    total_price_range: str | None = None
    unit_price_range: str | None = None
    notes: str | None = None


class ExclusionFlagValue(CorrectionValue):
    value: bool | None = None


class QuantityValue(CorrectionValue):
    value: float | str | None = None
    notes: str | None = None


class UnitValue(CorrectionValue):
    value: str | None = None


class CorrectionBase(BaseModel):
    """Fields shared by every correction regardless of kind."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    trade_category: str = Field(min_length=1)
    document_category: str = Field(min_length=1)
    raw_text: str | None = None
    ai_notes: str | None = None
    original_confidence: float | None = Field(default=None, ge=0, le=1)
    needs_review: bool | None = None

    @property
    def kind(self) -> CorrectionKind:
        return CorrectionKind(self.correction_kind)  # type: ignore[attr-defined]


class DescriptionCorrection(CorrectionBase):
    correction_kind: Literal["description"] = "description"
    original_value: DescriptionValue
    corrected_value: DescriptionValue


class CategoryCorrection(CorrectionBase):
    correction_kind: Literal["category"] = "category"
    original_value: CategoryValue
    corrected_value: CategoryValue


class PriceCorrection(CorrectionBase):
    correction_kind: Literal["price"] = "price"
    original_value: PriceValue
    corrected_value: PriceValue


class ExclusionFlagCorrection(CorrectionBase):
    correction_kind: Literal["exclusion_flag"] = "exclusion_flag"
    original_value: ExclusionFlagValue
    corrected_value: ExclusionFlagValue


class QuantityCorrection(CorrectionBase):
    correction_kind: Literal["quantity"] = "quantity"
    original_value: QuantityValue
    corrected_value: QuantityValue


class UnitCorrection(CorrectionBase):
    correction_kind: Literal["unit"] = "unit"
    original_value: UnitValue
    corrected_value: UnitValue


Correction = Annotated[
    DescriptionCorrection
    | CategoryCorrection
    | PriceCorrection
    | ExclusionFlagCorrection
    | QuantityCorrection
    | UnitCorrection,
    Field(discriminator="correction_kind"),
]

# Every CorrectionKind must appear in both tables.
CORRECTION_TYPES: dict[CorrectionKind, type[CorrectionBase]] = {
    CorrectionKind.DESCRIPTION: DescriptionCorrection,
    CorrectionKind.CATEGORY: CategoryCorrection,
    CorrectionKind.PRICE: PriceCorrection,
    CorrectionKind.EXCLUSION_FLAG: ExclusionFlagCorrection,
    CorrectionKind.QUANTITY: QuantityCorrection,
    CorrectionKind.UNIT: UnitCorrection,
}

VALUE_TYPES: dict[CorrectionKind, type[CorrectionValue]] = {
    CorrectionKind.DESCRIPTION: DescriptionValue,
    CorrectionKind.CATEGORY: CategoryValue,
    CorrectionKind.PRICE: PriceValue,
    CorrectionKind.EXCLUSION_FLAG: ExclusionFlagValue,
    CorrectionKind.QUANTITY: QuantityValue,
    CorrectionKind.UNIT: UnitValue,
}

_correction_adapter: TypeAdapter[Correction] = TypeAdapter(Correction)


def parse_correction(data: dict[str, Any]) -> Correction:
    """Validate a raw correction dict into its typed variant.

    Args:
        data: Raw correction with a ``correction_kind`` discriminator

    Returns:
        The typed correction for the declared kind

    Raises:
        ValidationError: If the kind is unknown or the payload is malformed

    """
    try:
        return _correction_adapter.validate_python(data)
    except PydanticValidationError as e:
        raise ValidationError(f"Malformed correction: {e}") from e


def parse_value(kind: CorrectionKind | str, data: dict[str, Any] | None) -> CorrectionValue:
    """Validate a stored value dict against the payload type for its kind."""
    try:
        value_type = VALUE_TYPES[CorrectionKind(kind)]
    except ValueError as e:
        raise ValidationError(f"Unknown correction kind: {kind}") from e

    try:
        return value_type.model_validate(data or {})
    except PydanticValidationError as e:
        raise ValidationError(f"Malformed {kind} value: {e}") from e


V = TypeVar("V", bound=CorrectionValue)


def ensure_value(value: CorrectionValue, value_type: type[V]) -> V:
    """Check that a payload has the type its correction kind expects.

    Raises:
        ValidationError: If the payload belongs to a different kind

    """
    if not isinstance(value, value_type):
        raise ValidationError(f"Expected {value_type.__name__}, got {type(value).__name__}")
    return value


def value_to_dict(value: CorrectionValue) -> dict[str, Any]:
    """Serialize a payload, omitting unset fields."""
    return value.model_dump(exclude_none=True)


def detect_corrections(
    original: dict[str, Any],
    corrected: dict[str, Any],
    trade_category: str,
    document_category: str,
    raw_text: str | None = None,
) -> list[Correction]:
    """Compare an extracted line item with its human-edited version.

    Produces one correction per changed field. Fields absent from the
    corrected item are treated as unchanged.

    Args:
        original: Line item as extracted by the AI
        corrected: Line item after human edits
        trade_category: Trade the bid belongs to
        document_category: Kind of bid document the item came from
        raw_text: Source text the item was extracted from

    Returns:
        List of typed corrections, possibly empty

    """
    confidence = original.get("confidence_score")
    shared = {
        "trade_category": trade_category,
        "document_category": document_category,
        "raw_text": raw_text,
        "original_confidence": confidence,
    }
    corrections: list[dict[str, Any]] = []

    def changed(field: str) -> bool:
        return field in corrected and corrected[field] != original.get(field)

    if changed("description"):
        corrections.append({
            "correction_kind": CorrectionKind.DESCRIPTION.value,
            "original_value": {"text": original.get("description"), "confidence": confidence},
            "corrected_value": {"text": corrected["description"]},
        })

    if changed("category"):
        corrections.append({
            "correction_kind": CorrectionKind.CATEGORY.value,
            "original_value": {"value": original.get("category"), "confidence": confidence},
            "corrected_value": {"value": corrected["category"]},
        })

    if changed("total_price") or changed("unit_price"):
        corrections.append({
            "correction_kind": CorrectionKind.PRICE.value,
            "original_value": {
                "total_price": original.get("total_price"),
                "unit_price": original.get("unit_price"),
                "confidence": confidence,
            },
            "corrected_value": {
                "total_price": corrected.get("total_price", original.get("total_price")),
                "unit_price": corrected.get("unit_price", original.get("unit_price")),
            },
        })

    if changed("is_exclusion"):
        corrections.append({
            "correction_kind": CorrectionKind.EXCLUSION_FLAG.value,
            "original_value": {"value": original.get("is_exclusion"), "confidence": confidence},
            "corrected_value": {"value": corrected["is_exclusion"]},
        })

    if changed("quantity"):
        corrections.append({
            "correction_kind": CorrectionKind.QUANTITY.value,
            "original_value": {"value": original.get("quantity"), "confidence": confidence},
            "corrected_value": {"value": corrected["quantity"]},
        })

    if changed("unit"):
        corrections.append({
            "correction_kind": CorrectionKind.UNIT.value,
            "original_value": {"value": original.get("unit"), "confidence": confidence},
            "corrected_value": {"value": corrected["unit"]},
        })

    return [parse_correction({**shared, **c}) for c in corrections]
