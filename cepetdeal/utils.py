# cepetdeal/utils.py
"""Shared utilities: logging setup, slugs, time and currency helpers."""
import os
import re
import logging
from datetime import datetime, timezone
from dotenv import load_dotenv

load_dotenv()

def get_logger(name=__name__):
    level = os.getenv("LOG_LEVEL", "INFO").upper()
    logging.basicConfig(
        format="%(asctime)s | %(levelname)-7s | %(name)s | %(message)s",
        level=getattr(logging, level, logging.INFO)
    )
    return logging.getLogger(name)

logger = get_logger("cepetdeal")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    # sqlite hands back naive datetimes even for timezone-aware columns
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def slugify(text: str) -> str:
    """Lowercase `text` and reduce it to `[a-z0-9-]`, single hyphens, no hyphen at either end."""
    if not text:
        return ""
    slug = text.lower()
    slug = re.sub(r"[^a-z0-9\s-]", "", slug)
    slug = re.sub(r"\s+", "-", slug)
    slug = re.sub(r"-+", "-", slug)
    return slug.strip("-")


def listing_slug(title: str, timestamp_ms: int) -> str:
    base = slugify(title)
    return f"{base}-{timestamp_ms}" if base else str(timestamp_ms)


def format_rupiah(amount) -> str:
    # id-ID grouping: Rp 1.250.000
    if amount is None:
        return "Rp 0"
    return "Rp " + f"{int(amount):,}".replace(",", ".")


_MONTHS_ID = [
    "Januari", "Februari", "Maret", "April", "Mei", "Juni",
    "Juli", "Agustus", "September", "Oktober", "November", "Desember",
]

def format_date_id(value: datetime) -> str:
    return f"{value.day} {_MONTHS_ID[value.month - 1]} {value.year}"
