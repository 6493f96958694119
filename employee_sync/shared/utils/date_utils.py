"""
Utilidades para manejo de fechas.

Se mantienen libres de I/O para poder testearlas fácilmente.
"""
from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Any, Optional


def utc_now() -> datetime:
    """Retorna la hora actual en UTC, como datetime aware."""
    return datetime.now(timezone.utc)


def parse_lenient_date(raw: Optional[str]) -> Optional[date]:
    """
    Parsea fechas tipo "yyyy-M-d" (la API origen no rellena con ceros).

    Acepta también ISO8601 completo. Retorna None si viene vacío o no se
    puede parsear.
    """
    if not raw or not str(raw).strip():
        return None
    text = str(raw).strip()
    parts = text.split("T", 1)[0].split(" ", 1)[0].split("-")
    if len(parts) == 3:
        try:
            return date(int(parts[0]), int(parts[1]), int(parts[2]))
        except ValueError:
            return None
    try:
        return datetime.fromisoformat(text.replace("Z", "+00:00")).date()
    except ValueError:
        return None


def to_calendar_date(value: Any) -> Optional[date]:
    """
    Reduce un valor de fecha/hora a su fecha de calendario.

    datetime -> date (se descarta la hora), date -> date, str -> parseo.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return parse_lenient_date(str(value))
