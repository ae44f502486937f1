"""CSV import of newsletter subscribers."""
import csv
import logging
import re
from dataclasses import dataclass, field
from io import StringIO
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from badcompany.errors import ValidationError
from badcompany.models.newsletter import NewsletterSubscriber
from badcompany.schemas.newsletter import ImportResponse, ImportRowError, ImportStats
from badcompany.services.base import RetryingService
from badcompany.services.email_service import _redact_email

logger = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
DEFAULT_SOURCE = "CSV Import"
REQUIRED_COLUMN = "email"


@dataclass
class ImportRow:
    line: int  # 1-based data row number (header excluded)
    email: str
    name: Optional[str] = None
    source: Optional[str] = None


@dataclass
class ParsedImport:
    rows: list[ImportRow] = field(default_factory=list)
    errors: list[ImportRowError] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.rows) + len(self.errors)


def normalize_email(raw: Optional[str]) -> str:
    return (raw or "").strip().lower()


def _clean(value: Optional[str]) -> Optional[str]:
    value = (value or "").strip()
    return value or None


def parse_subscriber_csv(text: str) -> ParsedImport:
    """Parse and validate an uploaded CSV.

    The header row must contain ``email``; ``name`` and ``source`` are
    optional. Rows with a missing or malformed email are reported in
    ``errors`` and left out of ``rows``.
    """
    reader = csv.DictReader(StringIO(text.lstrip("\ufeff")))
    columns = [(c or "").strip().lower() for c in (reader.fieldnames or [])]
    if REQUIRED_COLUMN not in columns:
        raise ValidationError("O ficheiro CSV tem de ter uma coluna 'email'")
    reader.fieldnames = columns

    parsed = ParsedImport()
    for index, record in enumerate(reader, start=1):
        if not any((value or "").strip() for value in record.values() if isinstance(value, str)):
            continue  # blank line
        email = normalize_email(record.get("email"))
        if not email:
            parsed.errors.append(ImportRowError(row=index, email="", error="Email em falta"))
            continue
        if not EMAIL_PATTERN.match(email):
            parsed.errors.append(ImportRowError(row=index, email=email, error="Email inválido"))
            continue
        parsed.rows.append(
            ImportRow(
                line=index,
                email=email,
                name=_clean(record.get("name")),
                source=_clean(record.get("source")),
            )
        )
    return parsed


class SubscriberImporter(RetryingService):
    """Upserts parsed CSV rows into newsletter_subscribers, one row per transaction."""

    async def import_csv(self, text: str) -> ImportResponse:
        parsed = parse_subscriber_csv(text)
        if parsed.total == 0:
            raise ValidationError("O ficheiro não contém dados")

        inserted = 0
        updated = 0
        errors = list(parsed.errors)

        for row in parsed.rows:
            try:
                created = await self._persist("upsert_subscriber", lambda session, row=row: self._upsert(session, row))
            except Exception as e:
                logger.error(
                    f"Import row {row.line} ({_redact_email(row.email)}) failed: {type(e).__name__}: {e}"
                )
                errors.append(ImportRowError(row=row.line, email=row.email, error="Erro interno ao processar"))
                continue
            if created:
                inserted += 1
            else:
                updated += 1

        errors.sort(key=lambda err: err.row)
        logger.info(
            f"Subscriber import finished: {inserted} inserted, {updated} updated, {len(errors)} failed"
        )
        return ImportResponse(
            success=True,
            stats=ImportStats(total=parsed.total, inserted=inserted, updated=updated, failed=len(errors)),
            errors=errors or None,
        )

    @staticmethod
    async def _upsert(session: AsyncSession, row: ImportRow) -> bool:
        """Returns True when a new subscriber was created."""
        result = await session.execute(select(NewsletterSubscriber).where(NewsletterSubscriber.email == row.email))
        existing = result.scalars().first()
        if existing is not None:
            existing.name = row.name or existing.name
            existing.source = row.source or existing.source or DEFAULT_SOURCE
            return False

        session.add(
            NewsletterSubscriber(
                email=row.email,
                name=row.name,
                source=row.source or DEFAULT_SOURCE,
                active=True,
            )
        )
        return True
