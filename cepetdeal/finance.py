# cepetdeal/finance.py
"""Money arithmetic: receipt payment breakdowns and the credit calculator.

All amounts are whole rupiah held in ints.
"""
from datetime import date, datetime, time, timedelta, timezone
from decimal import Decimal, ROUND_FLOOR, ROUND_HALF_UP
from typing import Any, Dict, Iterable, Optional, Tuple

from .errors import ValidationError
from .models import PaymentMethod

DOWN_PAYMENT_OPTIONS = [10, 20, 30, 40, 50]
TENOR_OPTIONS = [12, 24, 36, 48, 60]
INTEREST_RATE_OPTIONS = [3.5, 4.5, 5.5, 6.5, 7.5]
MIN_TENOR, MAX_TENOR = 12, 84

# assumed gross margin on recorded sales for the dealer dashboard
PROFIT_MARGIN = Decimal("0.15")
DASHBOARD_RANGES = {"7d": 7, "30d": 30, "90d": 90}


def to_amount(value: Any, field: str) -> int:
    """Coerce a JSON number or numeric string to whole rupiah."""
    if isinstance(value, bool):
        raise ValidationError(f"{field} harus berupa angka", field=field)
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str) and value.strip().isdigit():
        return int(value.strip())
    raise ValidationError(f"{field} harus berupa angka", field=field)


def parse_payment_method(value: Any) -> PaymentMethod:
    try:
        return PaymentMethod(value)
    except ValueError:
        raise ValidationError("Metode pembayaran harus CASH atau CREDIT", field="payment_method") from None


def validate_receipt_input(
    listing_price: int,
    payment_method: Any,
    buyer_name: Optional[str],
    buyer_address: Optional[str],
    down_payment: Any = None,
    tanda_jadi: Any = None,
) -> Dict[str, Any]:
    """Check the sale inputs and return them normalised.

    Down payment is required for CREDIT and must stay below the listing
    price; tanda jadi plus down payment may not exceed the price.
    """
    method = parse_payment_method(payment_method)
    if not buyer_name or not buyer_name.strip():
        raise ValidationError("Nama pembeli wajib diisi", field="buyer_name")
    if not buyer_address or not buyer_address.strip():
        raise ValidationError("Alamat pembeli wajib diisi", field="buyer_address")

    dp = 0
    if method == PaymentMethod.CREDIT:
        if down_payment is None or down_payment == "":
            raise ValidationError("Down payment is required for credit payment", field="down_payment")
        dp = to_amount(down_payment, "down_payment")
        if dp <= 0:
            raise ValidationError("Uang muka harus lebih dari 0", field="down_payment")
        if dp >= listing_price:
            raise ValidationError("Uang muka harus lebih kecil dari harga mobil", field="down_payment")

    deposit = None
    if tanda_jadi is not None and tanda_jadi != "":
        deposit = to_amount(tanda_jadi, "tanda_jadi")
        if deposit <= 0:
            raise ValidationError("Tanda jadi harus lebih dari 0", field="tanda_jadi")
        if deposit + dp > listing_price:
            raise ValidationError("Tanda jadi ditambah uang muka melebihi harga mobil", field="tanda_jadi")

    return {
        "payment_method": method,
        "buyer_name": buyer_name.strip(),
        "buyer_address": buyer_address.strip(),
        "down_payment": dp,
        "tanda_jadi": deposit,
    }


def compute_payment(listing_price: int, payment_method: PaymentMethod, down_payment: int = 0,
                    tanda_jadi: Optional[int] = None) -> Dict[str, int]:
    total_paid = (tanda_jadi or 0) + (down_payment if payment_method == PaymentMethod.CREDIT else 0)
    return {
        "total_price": listing_price,
        "total_paid": total_paid,
        "remaining_payment": listing_price - total_paid,
    }


def receipt_number(day: date, sequence: int) -> str:
    return f"RCP{day:%Y%m%d}{sequence:04d}"


def _floor(value: Decimal) -> int:
    return int(value.to_integral_value(rounding=ROUND_FLOOR))


def flat_rate_installment(price: int, dp_percent, tenor: int, rate) -> Dict[str, int]:
    """Flat-rate estimate shown next to a listing.

    Interest accrues on the financed amount for the whole tenor at `rate`
    percent a year; every figure is floored to whole rupiah.
    """
    _check_calculator_input(price, dp_percent, tenor, rate)
    dp = _floor(Decimal(price) * Decimal(str(dp_percent)) / 100)
    loan = price - dp
    interest = _floor(Decimal(loan) * Decimal(str(rate)) / 100 * Decimal(tenor) / 12)
    total = loan + interest
    return {
        "down_payment": dp,
        "loan_amount": loan,
        "interest": interest,
        "total_payment": total,
        "monthly_payment": total // tenor,
    }


def annuity_installment(price: int, dp_percent, tenor: int, rate) -> Dict[str, int]:
    _check_calculator_input(price, dp_percent, tenor, rate)
    dp = Decimal(price) * Decimal(str(dp_percent)) / 100
    principal = Decimal(price) - dp
    monthly_rate = Decimal(str(rate)) / 100 / 12
    if monthly_rate == 0:
        monthly = principal / tenor
    else:
        growth = (1 + monthly_rate) ** tenor
        monthly = principal * monthly_rate * growth / (growth - 1)
    monthly_rounded = int(monthly.quantize(Decimal(1), rounding=ROUND_HALF_UP))
    total = monthly_rounded * tenor
    loan = int(principal.quantize(Decimal(1), rounding=ROUND_HALF_UP))
    return {
        "down_payment": int(dp.quantize(Decimal(1), rounding=ROUND_HALF_UP)),
        "loan_amount": loan,
        "interest": total - loan,
        "total_payment": total,
        "monthly_payment": monthly_rounded,
    }


def _check_calculator_input(price, dp_percent, tenor, rate):
    if price is None or price <= 0:
        raise ValidationError("Harga harus lebih dari 0", field="price")
    if dp_percent is None or not 0 < dp_percent < 100:
        raise ValidationError("Persentase DP harus antara 0 dan 100", field="dp_percent")
    if tenor is None or not MIN_TENOR <= tenor <= MAX_TENOR:
        raise ValidationError(f"Tenor harus antara {MIN_TENOR} dan {MAX_TENOR} bulan", field="tenor")
    if rate is None or rate < 0:
        raise ValidationError("Bunga tidak boleh negatif", field="rate")


# dealer finance dashboard

def resolve_period(range_key: Optional[str], start_date: Optional[date] = None, end_date: Optional[date] = None,
                   now: Optional[datetime] = None) -> Tuple[Optional[datetime], datetime]:
    """Turn a dashboard range into a UTC (start, end) window.

    `7d`, `30d` and `90d` end at `now`; `all` has no start; `custom` covers
    whole days from `start_date` through `end_date`.
    """
    now = now or datetime.now(timezone.utc)
    key = (range_key or "30d").lower()
    if key in DASHBOARD_RANGES:
        return now - timedelta(days=DASHBOARD_RANGES[key]), now
    if key == "all":
        return None, now
    if key == "custom":
        if not start_date or not end_date:
            raise ValidationError("Tanggal mulai dan tanggal akhir wajib diisi",
                                  field="start_date" if not start_date else "end_date")
        if start_date > end_date:
            raise ValidationError("Tanggal mulai harus sebelum tanggal akhir", field="start_date")
        return (datetime.combine(start_date, time.min, tzinfo=timezone.utc),
                datetime.combine(end_date, time.max, tzinfo=timezone.utc))
    raise ValidationError("Rentang waktu tidak valid", field="range")


def previous_period(start: Optional[datetime], end: datetime) -> Optional[Tuple[datetime, datetime]]:
    """The window of equal length just before (start, end); None for `all`."""
    if start is None:
        return None
    return start - (end - start), start - timedelta(microseconds=1)


def _percent(part: int, whole: int) -> float:
    return round(part * 100 / whole, 2) if whole else 0.0


def _change(current: int, previous: int) -> float:
    return round((current - previous) * 100 / previous, 2) if previous else 0.0


def sales_summary(receipts: Iterable[Any]) -> Dict[str, Any]:
    """Totals over receipts; collected money is what the buyer has paid so far."""
    receipts = list(receipts)
    revenue = sum(int(r.total_price) for r in receipts)
    pending = sum(int(r.remaining_payment) for r in receipts)
    sales = len(receipts)
    collected = revenue - pending
    return {
        "total_revenue": revenue,
        "total_sales": sales,
        "average_sale_value": revenue // sales if sales else 0,
        "total_profit": _floor(Decimal(revenue) * PROFIT_MARGIN),
        "profit_margin": int(PROFIT_MARGIN * 100),
        "cash_sales": sum(1 for r in receipts if r.payment_method == PaymentMethod.CASH),
        "credit_sales": sum(1 for r in receipts if r.payment_method == PaymentMethod.CREDIT),
        "total_collected": collected,
        "total_pending": pending,
        "collection_rate": _percent(collected, revenue),
    }


def compare_summaries(current: Dict[str, Any], previous: Optional[Dict[str, Any]]) -> Dict[str, float]:
    previous = previous or {}
    return {
        "revenue_change": _change(current["total_revenue"], previous.get("total_revenue", 0)),
        "sales_change": _change(current["total_sales"], previous.get("total_sales", 0)),
        "profit_change": _change(current["total_profit"], previous.get("total_profit", 0)),
    }
