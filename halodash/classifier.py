"""
Failure signatures for report SQL and their deterministic repairs.

Each signature pairs a pattern over the platform's error message with a text
rewrite of the report SQL. The table is ordered; :class:`ErrorClassifier`
applies at most one rewrite per call, so a query with two independent defects
needs two repair-and-revalidate rounds.

Table and column names follow the HaloPSA reporting schema (FAULTS, AREA,
POLICY, TSTATUS, Request_View).
"""

from __future__ import annotations

import re
from collections.abc import Callable, Sequence
from typing import NamedTuple

from loguru import logger

from .models import Classification
from .sql_utils import underscore_to_spaced

Rewrite = Callable[[str, "re.Match[str]"], str]


class FailureSignature(NamedTuple):
    pattern: re.Pattern[str]
    description: str
    rewrite: Rewrite


def _sub(pattern: str, replacement: str, sql: str, count: int = 0) -> str:
    return re.sub(pattern, replacement, sql, count=count, flags=re.IGNORECASE)


def _fix_client_table(sql: str, _match: re.Match[str]) -> str:
    # c.* references are rewritten to a.* below, so move the alias with them
    sql = _sub(r"\b(FROM|JOIN)\s+Client\s+c\b", r"\1 AREA a", sql)
    sql = _sub(r"FROM\s+Client\s+", "FROM AREA ", sql)
    sql = _sub(r"JOIN\s+Client\s+", "JOIN AREA ", sql)
    sql = _sub(r"Client\.name", "AREA.aareadesc", sql)
    sql = _sub(r"Client\.id", "AREA.Aarea", sql)
    sql = _sub(r"\bc\.name", "a.aareadesc", sql)
    sql = _sub(r"\bc\.id", "a.Aarea", sql)
    sql = sql.replace("[Client]", "[Customer Name]")
    sql = _sub(r"f\.client_id", "f.Areaint", sql)
    return _sub(r"client_id", "Areaint", sql)


def _fix_priority_table(sql: str, _match: re.Match[str]) -> str:
    sql = _sub(r"FROM\s+PRIORITY\s+", "FROM POLICY ", sql)
    sql = _sub(r"JOIN\s+PRIORITY\s+", "JOIN POLICY ", sql)
    sql = _sub(r"PRIORITY\.Pdesc", "POLICY.Pdesc", sql)
    sql = _sub(r"PRIORITY\.Plevel", "POLICY.Ppolicy", sql)
    sql = _sub(r"p\.Plevel", "p.Ppolicy", sql)
    return _sub(r"f\.Priority\s*=", "f.seriousness =", sql)


def _fix_order_by(sql: str, _match: re.Match[str]) -> str:
    # ORDER BY is only legal in a view or subquery when TOP is present
    if not re.search(r"SELECT\s+TOP\s+", sql, re.IGNORECASE) and re.search(
        r"ORDER\s+BY", sql, re.IGNORECASE
    ):
        sql = _sub(r"SELECT\s+", "SELECT TOP 1000 ", sql, count=1)

    def strip_order_by(match: re.Match[str]) -> str:
        return _sub(r"ORDER\s+BY\s+[^)]+", "", match.group(0), count=1)

    return re.sub(
        r"\(\s*SELECT[^)]*ORDER\s+BY[^)]*\)", strip_order_by, sql, flags=re.IGNORECASE
    )


def _fix_statustype(sql: str, _match: re.Match[str]) -> str:
    if not re.search(r"JOIN\s+TSTATUS", sql, re.IGNORECASE):
        sql = _sub(
            r"FROM\s+FAULTS\s+f\b",
            "FROM FAULTS f JOIN TSTATUS t ON f.Status = t.Tstatus",
            sql,
            count=1,
        )
    sql = _sub(r"f\.statustype_id", "t.TstatusType", sql)
    return _sub(r"statustype_id", "t.TstatusType", sql)


def _fix_sla_columns(sql: str, _match: re.Match[str]) -> str:
    sql = _sub(r"f\.slahold\s*=\s*1", "f.FSLAonhold = 1", sql)
    sql = _sub(r"f\.slabreach\s*=\s*1", "f.slastate = 'O'", sql)
    sql = _sub(r"\bslahold\b", "FSLAonhold", sql)
    return _sub(r"\bslabreach\b", "slastate", sql)


def _fix_dateoccurred(sql: str, _match: re.Match[str]) -> str:
    return _sub(r"dateoccurred", "dateoccured", sql)


REQUEST_VIEW_COLUMNS: frozenset[str] = frozenset(
    {
        "Priority_Description",
        "Status_ID",
        "Customer_Name",
        "Date_Logged",
        "SLA_Compliance",
        "Response_Time",
        "Response_Date",
    }
)


def _fix_request_view_column(sql: str, match: re.Match[str]) -> str:
    column = match.group(1)
    canonical = next((c for c in REQUEST_VIEW_COLUMNS if c.lower() == column.lower()), None)
    if canonical is None:
        return sql
    return re.sub(
        rf"(?<!\[){re.escape(canonical)}", underscore_to_spaced(canonical), sql, flags=re.IGNORECASE
    )


DEFAULT_SIGNATURES: tuple[FailureSignature, ...] = (
    FailureSignature(
        re.compile(r"Invalid object name 'Client'", re.IGNORECASE),
        "Replace 'Client' table with 'AREA' table",
        _fix_client_table,
    ),
    FailureSignature(
        re.compile(r"Invalid object name 'PRIORITY'", re.IGNORECASE),
        "Replace 'PRIORITY' table with 'POLICY' table for priority lookup",
        _fix_priority_table,
    ),
    FailureSignature(
        re.compile(r"ORDER BY clause is invalid", re.IGNORECASE),
        "Remove ORDER BY or add TOP clause",
        _fix_order_by,
    ),
    FailureSignature(
        re.compile(r"Invalid column name 'statustype_id'", re.IGNORECASE),
        "Use TSTATUS.TstatusType via JOIN instead of statustype_id",
        _fix_statustype,
    ),
    FailureSignature(
        re.compile(r"Invalid column name '(slahold|slabreach)'", re.IGNORECASE),
        "Use slastate and slaresponsestate columns instead",
        _fix_sla_columns,
    ),
    FailureSignature(
        re.compile(r"Invalid column name 'dateoccurred'", re.IGNORECASE),
        "Correct spelling to 'dateoccured' (HaloPSA uses this spelling)",
        _fix_dateoccurred,
    ),
    FailureSignature(
        re.compile(r"Invalid column name '(\w+)'", re.IGNORECASE),
        "Check column name in Request_View",
        _fix_request_view_column,
    ),
)


class ErrorClassifier:
    """Matches an execution error against an ordered signature table."""

    def __init__(self, signatures: Sequence[FailureSignature] = DEFAULT_SIGNATURES) -> None:
        self._signatures = tuple(signatures)

    @property
    def signatures(self) -> tuple[FailureSignature, ...]:
        return self._signatures

    def analyze(self, sql: str, error_message: str) -> Classification:
        """
        Classify ``error_message`` and propose a repaired version of ``sql``.

        The first signature whose pattern matches and whose rewrite changes
        the text wins. A rewrite that raises or leaves the text unchanged
        passes the error on to the next signature.
        """
        for signature in self._signatures:
            match = signature.pattern.search(error_message)
            if match is None:
                continue
            try:
                repaired = signature.rewrite(sql, match)
            except Exception as exc:
                logger.warning(f"Repair '{signature.description}' failed: {exc}")
                continue
            if repaired == sql:
                continue
            return Classification(
                matched=True,
                error_type=signature.pattern.pattern,
                description=signature.description,
                repaired_sql=repaired,
            )
        return Classification(matched=False)
