import math
import re
from datetime import date
from typing import Any, Optional
import pandas as pd


def _clean_str(value: Optional[Any]) -> Optional[str]:
    if value is None:
        return None
    s = str(value).strip()
    return s if s else None


def to_float(value: Optional[Any]) -> Optional[float]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value) if math.isfinite(value) else None
    s = _clean_str(value)
    if not s:
        return None
    s = s.replace(",", "")
    try:
        number = float(s)
    except ValueError:
        return None
    return number if math.isfinite(number) else None


def parse_date(value: Optional[Any]) -> Optional[str]:
    if isinstance(value, (date, pd.Timestamp)):
        return pd.Timestamp(value).strftime("%Y-%m-%d")
    s = _clean_str(value)
    if not s:
        return None
    try:
        dt = pd.to_datetime(s, errors="raise", dayfirst=False, utc=False)
        return dt.strftime("%Y-%m-%d")
    except Exception:
        try:
            dt = pd.to_datetime(s, errors="raise", dayfirst=True, utc=False)
            return dt.strftime("%Y-%m-%d")
        except Exception:
            return None


def to_date(value: Optional[Any]) -> Optional[date]:
    iso = parse_date(value)
    if iso is None:
        return None
    return date.fromisoformat(iso)


def normalize_education(level: Optional[str]) -> Optional[str]:
    s = _clean_str(level)
    if not s:
        return None
    v = re.sub(r"[^a-z]", "", s.lower())
    mapping = {
        "phd": "phd",
        "doctorate": "phd",
        "doctoral": "phd",
        "dphil": "phd",
        "masters": "masters",
        "master": "masters",
        "msc": "masters",
        "ma": "masters",
        "mba": "masters",
        "postgraduate": "masters",
        "bachelors": "bachelors",
        "bachelor": "bachelors",
        "bsc": "bachelors",
        "ba": "bachelors",
        "undergraduate": "bachelors",
        "diploma": "diploma",
        "associate": "diploma",
        "highschool": "secondary",
        "secondary": "secondary",
    }
    return mapping.get(v, "other")


def normalize_referral(source: Optional[str]) -> Optional[str]:
    s = _clean_str(source)
    if not s:
        return None
    v = re.sub(r"[\s\-]+", "_", s.lower())
    mapping = {
        "existing_client": "existing_client",
        "client": "existing_client",
        "client_referral": "existing_client",
        "referral": "existing_client",
        "agent": "agent",
        "partner_agent": "agent",
        "website": "website",
        "web": "website",
        "organic": "website",
        "social_media": "social_media",
        "social": "social_media",
        "facebook": "social_media",
        "instagram": "social_media",
        "linkedin": "social_media",
    }
    return mapping.get(v, "other")


def camel_to_snake(key: str) -> str:
    return re.sub(r"(?<!^)(?=[A-Z])", "_", key).lower()
