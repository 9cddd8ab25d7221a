"""
Error catalog.

Every domain failure carries a string code. The catalog maps it to a
severity, a human-readable message and the suggested fix, and the code
prefix selects the HTTP status returned to clients.
"""

from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field


class ErrorInfo(BaseModel):
    """Static metadata for one error code."""
    model_config = ConfigDict(frozen=True)

    code: str = Field(..., description="Catalog code, e.g. DB_201")
    severity: str = Field(..., description="CRITICAL, HIGH, MEDIUM or LOW")
    message: str = Field(..., description="Client-facing message")
    solution: str = Field(..., description="Suggested remediation")
    log: bool = Field(True, description="Whether occurrences are logged")


def _entry(code: str, severity: str, message: str, solution: str, log: bool = True) -> ErrorInfo:
    return ErrorInfo(code=code, severity=severity, message=message, solution=solution, log=log)


ERROR_CATALOG: Dict[str, ErrorInfo] = {
    entry.code: entry
    for entry in (
        # Server
        _entry("SER_100", "HIGH", "Unhandled server error", "Inspect the traceback for the request reference"),
        _entry("SER_101", "CRITICAL", "Server failed to start", "Check port availability and .env config"),
        _entry("SER_102", "HIGH", "API route not found", "Validate router registration in start_website.py"),
        _entry("SER_103", "HIGH", "Memory leak detected", "Profile heap usage and check for reference cycles"),
        _entry("SER_104", "MEDIUM", "CORS policy violation", "Update CORS_ORIGINS configuration"),
        _entry("SER_105", "CRITICAL", "SSL/TLS handshake failed", "Renew certificates and verify proxy config"),
        # Database
        _entry("DB_201", "CRITICAL", "Database connection timeout", "Check cluster status and connection string"),
        _entry("DB_202", "HIGH", "Transaction deadlock", "Optimize query sequencing and add retries"),
        _entry("DB_203", "HIGH", "Schema validation failed", "Review model definitions in models/"),
        _entry("DB_204", "MEDIUM", "Index missing for query", "Add proper indexes to tables"),
        _entry("DB_205", "HIGH", "Duplicate key violation", "Implement upsert or pre-check logic"),
        # Auth
        _entry("AUTH_301", "HIGH", "Brute force attack detected", "Enable rate limiting on login routes"),
        _entry("AUTH_302", "HIGH", "Token expired", "Issue a new operator token"),
        _entry("AUTH_303", "CRITICAL", "Admin privilege escalation attempt", "Audit role checks immediately"),
        _entry("AUTH_304", "MEDIUM", "Session expired", "Refresh token or re-authenticate", log=False),
        _entry("AUTH_305", "HIGH", "Invalid admin credentials", "Check credentials and attempt count"),
        # Game logic
        _entry("GAME_401", "CRITICAL", "Payout calculation mismatch", "Freeze payouts and audit algorithm"),
        _entry("GAME_402", "HIGH", "Negative balance allowed", "Add pre-transaction validation"),
        _entry("GAME_403", "HIGH", "Jackpot overflow", "Use arbitrary precision arithmetic"),
        # Configuration
        _entry("CONFIG_5001", "MEDIUM", "Invalid game configuration", "Validate game settings JSON"),
        # User management
        _entry("USER_4001", "HIGH", "User self-exclusion violation", "Block account and review access logs"),
        # Transactions
        _entry("TX_3001", "CRITICAL", "Payout failed - insufficient funds", "Freeze account and notify finance team"),
        _entry("TX_3002", "HIGH", "Deposit verification timeout", "Check payment gateway status"),
        # Payments
        _entry("PAY_501", "CRITICAL", "Withdrawal double-spend attempt", "Enable transaction locking"),
        _entry("PAY_502", "HIGH", "Cryptocurrency rate API failure", "Implement fallback pricing provider"),
        _entry("PAY_503", "HIGH", "Bank reconciliation mismatch", "Pause withdrawals and audit ledger"),
    )
}

UNKNOWN_ERROR = ErrorInfo(
    code="UNKNOWN",
    severity="MEDIUM",
    message="Unrecognized error occurred",
    solution="Check application logs",
)

HTTP_STATUS_BY_PREFIX = {
    "SER": 500,
    "DB": 503,
    "AUTH": 401,
    "GAME": 400,
    "PAY": 402,
    "CONFIG": 500,
    "USER": 400,
    "TX": 402,
}


def get_error_by_code(code: Optional[str]) -> ErrorInfo:
    """Look up a code, falling back to the UNKNOWN entry."""
    if not code:
        return UNKNOWN_ERROR
    return ERROR_CATALOG.get(code, UNKNOWN_ERROR)


def http_status_for(code: str) -> int:
    """Map a code's prefix (text before the first underscore) to an HTTP status."""
    prefix = code.split("_", 1)[0]
    return HTTP_STATUS_BY_PREFIX.get(prefix, 500)


def is_critical(code: Optional[str]) -> bool:
    return get_error_by_code(code).severity == "CRITICAL"


class AppError(Exception):
    """Domain error tagged with a catalog code."""

    def __init__(self, code: str, message: Optional[str] = None, metadata: Optional[Dict[str, Any]] = None):
        self.code = code
        self.info = get_error_by_code(code)
        self.message = message or self.info.message
        self.metadata = metadata or {}
        super().__init__(self.message)

    @property
    def status_code(self) -> int:
        return http_status_for(self.code)
