"""
SQL risk analyzer for compiled DDL.

Classifies statements by shape only (regex on the compiled text) into
LOW / MEDIUM / HIGH / CRITICAL and gives a rough duration estimate. It is
advisory: the Migrator uses it for previews and never blocks on it.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Pattern, Tuple


class RiskLevel(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"

    @property
    def rank(self) -> int:
        return _RANKS[self]


_RANKS = {
    RiskLevel.LOW: 1,
    RiskLevel.MEDIUM: 2,
    RiskLevel.HIGH: 3,
    RiskLevel.CRITICAL: 4,
}


def _rx(pattern: str) -> Pattern[str]:
    return re.compile(pattern, re.IGNORECASE | re.DOTALL)


# First match wins.
_RISK_RULES: List[Tuple[Pattern[str], RiskLevel]] = [
    (_rx(r"^DROP\s+TABLE\b"), RiskLevel.CRITICAL),
    (_rx(r"^(CREATE\s+(TEMPORARY\s+)?TABLE)\b"), RiskLevel.LOW),
    (_rx(r"^ALTER\s+TABLE\b.*\bDROP\s+COLUMN\b"), RiskLevel.HIGH),
    (_rx(r"^ALTER\s+TABLE\b.*\bDROP\s+(INDEX|CONSTRAINT|FOREIGN\s+KEY|PRIMARY\s+KEY)\b"), RiskLevel.MEDIUM),
    (_rx(r"^ALTER\s+TABLE\b.*\b(MODIFY|ALTER)\s+COLUMN\b"), RiskLevel.MEDIUM),
    (_rx(r"^ALTER\s+TABLE\b.*\bRENAME\b"), RiskLevel.MEDIUM),
    (_rx(r"^ALTER\s+TABLE\b.*\bADD\s+(COLUMN|CONSTRAINT|INDEX|UNIQUE|PRIMARY\s+KEY)\b"), RiskLevel.LOW),
    (_rx(r"^CREATE\s+(UNIQUE\s+)?INDEX\b"), RiskLevel.LOW),
    (_rx(r"^DROP\s+INDEX\b"), RiskLevel.MEDIUM),
    (_rx(r"^RENAME\s+TABLE\b"), RiskLevel.MEDIUM),
    (_rx(r"^TRUNCATE\b"), RiskLevel.HIGH),
    (_rx(r"^DELETE\s+FROM\b(?!.*\bWHERE\b)"), RiskLevel.HIGH),
    (_rx(r"^COMMENT\s+ON\b"), RiskLevel.LOW),
]

_IDENT = r"[`\"]?([A-Za-z0-9_]+)[`\"]?"

_TABLE_RULES: List[Pattern[str]] = [
    _rx(rf"^CREATE\s+(?:TEMPORARY\s+)?TABLE\s+(?:IF\s+NOT\s+EXISTS\s+)?{_IDENT}"),
    _rx(rf"^DROP\s+TABLE\s+(?:IF\s+EXISTS\s+)?{_IDENT}"),
    _rx(rf"^ALTER\s+TABLE\s+{_IDENT}"),
    _rx(rf"^TRUNCATE\s+(?:TABLE\s+)?{_IDENT}"),
    _rx(rf"^RENAME\s+TABLE\s+{_IDENT}"),
    _rx(rf"^DELETE\s+FROM\s+{_IDENT}"),
    _rx(rf"^CREATE\s+(?:UNIQUE\s+)?INDEX\s+\S+\s+ON\s+{_IDENT}"),
    _rx(rf"^DROP\s+INDEX\s+\S+\s+ON\s+{_IDENT}"),
    _rx(rf"^COMMENT\s+ON\s+COLUMN\s+{_IDENT}"),
]

# Estimated seconds, first match wins.
_DURATION_RULES: List[Tuple[Pattern[str], float]] = [
    (_rx(r"^CREATE\s+(TEMPORARY\s+)?TABLE\b"), 1.0),
    (_rx(r"^DROP\s+TABLE\b"), 0.3),
    (_rx(r"^ALTER\s+TABLE\b.*\bADD\s+INDEX\b"), 10.0),
    (_rx(r"^ALTER\s+TABLE\b.*\bADD\s+COLUMN\b"), 2.0),
    (_rx(r"^ALTER\s+TABLE\b.*\bDROP\s+COLUMN\b"), 1.5),
    (_rx(r"^ALTER\s+TABLE\b"), 1.0),
    (_rx(r"^CREATE\s+(UNIQUE\s+)?INDEX\b"), 10.0),
]

_DEFAULT_DURATION = 0.5


@dataclass(frozen=True)
class StatementAnalysis:
    sql: str
    risk: RiskLevel
    duration: float
    table: Optional[str]


@dataclass(frozen=True)
class BatchAnalysis:
    total_risk: RiskLevel
    total_duration: float
    affected_tables: List[str] = field(default_factory=list)
    statement_count: int = 0
    details: List[StatementAnalysis] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_risk": self.total_risk.value,
            "total_duration": self.total_duration,
            "affected_tables": list(self.affected_tables),
            "statement_count": self.statement_count,
            "details": [
                {"sql": d.sql, "risk": d.risk.value, "duration": d.duration, "table": d.table}
                for d in self.details
            ],
        }


class SqlAnalyzer:
    """Stateless; every method can be called on the class or an instance."""

    @staticmethod
    def assess_risk(sql: str) -> RiskLevel:
        text = sql.strip()
        for pattern, risk in _RISK_RULES:
            if pattern.search(text):
                return risk
        return RiskLevel.MEDIUM

    @staticmethod
    def extract_table_name(sql: str) -> Optional[str]:
        text = sql.strip()
        for pattern in _TABLE_RULES:
            match = pattern.search(text)
            if match:
                return match.group(1)
        return None

    @staticmethod
    def estimate_duration(sql: str) -> float:
        text = sql.strip()
        for pattern, seconds in _DURATION_RULES:
            if pattern.search(text):
                return seconds
        return _DEFAULT_DURATION

    @classmethod
    def analyze_batch(cls, statements: Iterable[str]) -> BatchAnalysis:
        details: List[StatementAnalysis] = []
        tables: List[str] = []
        total_risk = RiskLevel.LOW

        for sql in statements:
            risk = cls.assess_risk(sql)
            table = cls.extract_table_name(sql)
            details.append(StatementAnalysis(sql, risk, cls.estimate_duration(sql), table))
            if risk.rank > total_risk.rank:
                total_risk = risk
            if table and table not in tables:
                tables.append(table)

        return BatchAnalysis(
            total_risk=total_risk,
            total_duration=round(sum(d.duration for d in details), 2),
            affected_tables=tables,
            statement_count=len(details),
            details=details,
        )
