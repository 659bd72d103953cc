"""
services/work_service.py — Work registration and ICC codes.

An ICC code is COUNTRY-REGISTRANT-SERIAL:
  country     2 letters (ISO 3166-1 alpha-2)
  registrant  3–5 letters or digits
  serial      6 digits, generated when the caller omits it

Codes are stored upper-cased and are unique across all works.
"""

from __future__ import annotations

import re
import secrets

from sqlalchemy import select
from sqlalchemy.orm import Session

from royalty_ledger.app.errors import AppError, ErrorCode
from royalty_ledger.app.models.work import Work
from royalty_ledger.app.services import event_service

ICC_PATTERN = re.compile(r"^([A-Z]{2})-([A-Z0-9]{3,5})-(\d{6})$")

SERIAL_LENGTH = 6

# Attempts at a free random serial before giving up with a 409.
_MAX_SERIAL_ATTEMPTS = 5


def generate_serial(seed: int | None = None) -> str:
    """Zero-padded 6-digit serial. A non-negative seed makes it deterministic."""
    if seed is not None and seed >= 0:
        value = seed % 10 ** SERIAL_LENGTH
    else:
        value = secrets.randbelow(10 ** SERIAL_LENGTH)
    return f"{value:0{SERIAL_LENGTH}d}"


def format_icc(country: str, registrant: str, serial: str) -> str:
    return f"{country}-{registrant}-{serial}".upper()


def is_valid_icc(value: str) -> bool:
    return ICC_PATTERN.match(value) is not None


def _icc_taken(icc_code: str, session: Session) -> bool:
    return session.execute(
        select(Work.id).where(Work.icc_code == icc_code)
    ).scalar_one_or_none() is not None


def _resolve_icc_code(icc: dict, session: Session) -> str:
    country = icc["country"]
    registrant = icc["registrant"]

    serial = icc.get("serial")
    if serial:
        icc_code = format_icc(country, registrant, serial)
        if not is_valid_icc(icc_code):
            raise AppError(
                ErrorCode.INVALID_ICC_CODE,
                f"ICC code '{icc_code}' must match CC-RRRRR-NNNNNN.",
                400,
                field="icc",
            )
        if _icc_taken(icc_code, session):
            raise AppError(
                ErrorCode.DUPLICATE_ICC_CODE,
                f"ICC code '{icc_code}' is already registered.",
                409,
                field="icc",
            )
        return icc_code

    for _ in range(_MAX_SERIAL_ATTEMPTS):
        icc_code = format_icc(country, registrant, generate_serial())
        if not _icc_taken(icc_code, session):
            return icc_code

    raise AppError(
        ErrorCode.DUPLICATE_ICC_CODE,
        f"Could not allocate a free ICC serial for {country}-{registrant}.",
        409,
        field="icc",
    )


def register_work(owner_id: int, data: dict, session: Session) -> Work:
    """
    Registers a work owned by the caller.

    data keys: title, description (optional), icc {country, registrant, serial?}.

    Raises:
      AppError(INVALID_ICC_CODE, 400)
      AppError(DUPLICATE_ICC_CODE, 409)
    """
    icc_code = _resolve_icc_code(data["icc"], session)

    work = Work(
        owner_id=owner_id,
        title=data["title"].strip(),
        description=data.get("description"),
        icc_code=icc_code,
    )
    session.add(work)
    session.flush()

    event_service.log_event(
        session,
        "work.register",
        user_id=owner_id,
        work_id=work.id,
        icc_code=icc_code,
    )

    return work


def get_work(work_id: int, session: Session) -> Work:
    """Raises AppError(WORK_NOT_FOUND, 404)."""
    work = session.get(Work, work_id)
    if work is None:
        raise AppError(
            ErrorCode.WORK_NOT_FOUND,
            f"Work {work_id} not found.",
            404,
        )
    return work
