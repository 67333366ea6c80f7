from typing import Dict, Any, Optional
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from django.db.models import Model
from django.db.models.functions import Length
from django.utils import timezone


class ServiceError(Exception):
    def __init__(self, message: str, code: str = "ERROR", details: Dict = None):
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(message)


class ValidationError(ServiceError):
    def __init__(self, message: str, field: str = None, details: Dict = None):
        super().__init__(message, "VALIDATION_ERROR", details)
        self.field = field


class NotFoundError(ServiceError):
    def __init__(self, resource: str, identifier: Any):
        super().__init__(
            f"{resource} not found: {identifier}",
            "NOT_FOUND",
            {"resource": resource, "identifier": str(identifier)}
        )


class BusinessRuleError(ServiceError):
    def __init__(self, message: str, rule: str = None):
        super().__init__(message, "BUSINESS_RULE_VIOLATION", {"rule": rule})


class InvalidStateError(ServiceError):
    """A transition was requested from a status that does not allow it."""

    def __init__(self, resource: str, identifier: Any, current: str, expected):
        expected = [expected] if isinstance(expected, str) else list(expected)
        super().__init__(
            f"{resource} {identifier} is {current}, expected {' or '.join(expected)}",
            "INVALID_STATE",
            {
                "resource": resource,
                "identifier": str(identifier),
                "current_status": current,
                "expected_status": expected,
            }
        )


class ConflictError(ServiceError):
    def __init__(self, message: str, details: Dict = None):
        super().__init__(message, "CONFLICT", details)


class ReservationConflictError(ConflictError):
    """A lot changed underneath a reserve/release/consume and the guarded update matched no row."""

    def __init__(self, lot_id: int, operation: str, quantity: Decimal):
        super().__init__(
            f"Stock lot {lot_id} changed during {operation} of {quantity}",
            {"lot_id": lot_id, "operation": operation, "quantity": str(quantity)}
        )
        self.lot_id = lot_id


class NoBOMDefinedError(ServiceError):
    def __init__(self, product_id: int, sku: str = ""):
        super().__init__(
            f"No BOM defined for product {sku or product_id}",
            "NO_BOM_DEFINED",
            {"product_id": product_id, "sku": sku}
        )


def success_response(data: Any = None, message: str = "Success") -> Dict:
    response = {"success": True, "message": message}
    if data is not None:
        if isinstance(data, dict):
            response.update(data)
        else:
            response["data"] = data
    return response


def to_decimal(value: Any, default: Decimal = Decimal("0")) -> Decimal:
    if value is None:
        return default
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError):
        return default


# Largest value a max_digits=15, decimal_places=4 column holds
MAX_QUANTITY = Decimal("99999999999.9999")


def to_quantity(value: Any, field: str = "quantity") -> Decimal:
    """Parse a user-supplied quantity, rejecting non-numbers, NaN, infinities and overflow."""
    quantity = to_decimal(value, default=None)
    if quantity is None or not quantity.is_finite():
        raise ValidationError(f"{field} must be a number", field)
    if abs(quantity) > MAX_QUANTITY or abs(round_decimal(quantity)) > MAX_QUANTITY:
        raise ValidationError(f"{field} is too large", field)
    return round_decimal(quantity)


def round_decimal(value: Decimal, places: int = 4) -> Decimal:
    if value is None:
        return Decimal("0")
    quantize_str = "0." + "0" * places
    return value.quantize(Decimal(quantize_str), rounding=ROUND_HALF_UP)


def decimal_str(value: Decimal) -> str:
    """Stable text form for quantities stored in JSON columns."""
    return str(round_decimal(to_decimal(value)))


def generate_number(prefix: str, model_class: Model, field: str = "order_number") -> str:
    today = timezone.now()
    date_part = today.strftime("%Y%m%d")
    filter_kwargs = {f"{field}__startswith": f"{prefix}-{date_part}"}
    # Longest first so ...-10000 sorts above ...-9999
    last = (
        model_class.objects.filter(**filter_kwargs)
        .annotate(number_length=Length(field))
        .order_by("-number_length", f"-{field}")
        .first()
    )

    if last:
        last_num = getattr(last, field)
        try:
            seq = int(last_num.split("-")[-1]) + 1
        except ValueError:
            seq = 1
    else:
        seq = 1

    return f"{prefix}-{date_part}-{seq:04d}"


class BaseService:
    model = None

    @classmethod
    def get_by_id(cls, id: int) -> Optional[Model]:
        try:
            return cls.model.objects.get(id=id)
        except (cls.model.DoesNotExist, ValueError, TypeError):
            return None

    @classmethod
    def get_or_404(cls, id: int) -> Model:
        obj = cls.get_by_id(id)
        if not obj:
            raise NotFoundError(cls.model.__name__, id)
        return obj

