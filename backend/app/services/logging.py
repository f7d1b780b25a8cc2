"""
Structured Logging Service

Bookkeeping events emitted as one JSON object per line:
- Client created / deleted
- Excel import finished / failed
- Booking rules created from an invoice
- BTW aangifte calculated / status changed
- Export generated

Each log entry includes the event name, severity, entity type and, where
known, client_id, entity_id and user_id.
"""
import json
import logging
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import UUID


class LogSeverity(str, Enum):
    """Log severity levels."""
    INFO = "INFO"
    WARN = "WARN"
    ERROR = "ERROR"


class LogEntityType(str, Enum):
    """Entity types for structured logging."""
    CLIENT = "client"
    UPLOAD = "upload"
    BOEKINGSREGEL = "boekingsregel"
    BTW_AANGIFTE = "btw_aangifte"
    EXPORT = "export"
    SYSTEM = "system"


class StructuredLogger:
    """Structured logging service for bookkeeping events."""

    def __init__(self, logger_name: str = "bookkeeping"):
        self.logger = logging.getLogger(logger_name)
        self._ensure_handler()

    def _ensure_handler(self):
        if not self.logger.handlers:
            handler = logging.StreamHandler()
            handler.setFormatter(logging.Formatter('%(message)s'))
            self.logger.addHandler(handler)
            self.logger.setLevel(logging.INFO)

    @staticmethod
    def _serialize(value: Any) -> Any:
        if isinstance(value, UUID):
            return str(value)
        return value

    def _create_log_entry(
        self,
        event: str,
        severity: LogSeverity,
        entity_type: LogEntityType,
        entity_id: Optional[UUID] = None,
        client_id: Optional[UUID] = None,
        user_id: Optional[UUID] = None,
        message: Optional[str] = None,
        **extra
    ) -> dict:
        entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "event": event,
            "severity": severity.value,
            "entity_type": entity_type.value,
        }
        if entity_id:
            entry["entity_id"] = str(entity_id)
        if client_id:
            entry["client_id"] = str(client_id)
        if user_id:
            entry["user_id"] = str(user_id)
        if message:
            entry["message"] = message
        for key, value in extra.items():
            entry[key] = self._serialize(value)
        return entry

    def _log(self, entry: dict, severity: LogSeverity):
        log_str = json.dumps(entry, default=str)
        if severity == LogSeverity.ERROR:
            self.logger.error(log_str)
        elif severity == LogSeverity.WARN:
            self.logger.warning(log_str)
        else:
            self.logger.info(log_str)

    # Client events
    def client_created(
        self,
        client_id: UUID,
        name: str,
        user_id: Optional[UUID] = None,
        source: str = "manual"
    ):
        entry = self._create_log_entry(
            event="client.created",
            severity=LogSeverity.INFO,
            entity_type=LogEntityType.CLIENT,
            entity_id=client_id,
            client_id=client_id,
            user_id=user_id,
            message=f"Client created: {name}",
            source=source
        )
        self._log(entry, LogSeverity.INFO)

    def client_deleted(
        self,
        client_id: UUID,
        name: str,
        user_id: Optional[UUID] = None
    ):
        entry = self._create_log_entry(
            event="client.deleted",
            severity=LogSeverity.WARN,
            entity_type=LogEntityType.CLIENT,
            entity_id=client_id,
            client_id=client_id,
            user_id=user_id,
            message=f"Client deleted: {name}"
        )
        self._log(entry, LogSeverity.WARN)

    # Upload events
    def import_completed(
        self,
        upload_id: UUID,
        file_type: str,
        file_name: str,
        records_processed: int,
        records_failed: int,
        client_id: Optional[UUID] = None,
        user_id: Optional[UUID] = None
    ):
        """Log a finished Excel import; WARN when rows were rejected."""
        severity = LogSeverity.WARN if records_failed else LogSeverity.INFO
        entry = self._create_log_entry(
            event="upload.completed",
            severity=severity,
            entity_type=LogEntityType.UPLOAD,
            entity_id=upload_id,
            client_id=client_id,
            user_id=user_id,
            message=f"Import {file_type}: {records_processed} verwerkt, {records_failed} mislukt",
            file_type=file_type,
            file_name=file_name,
            records_processed=records_processed,
            records_failed=records_failed
        )
        self._log(entry, severity)

    def import_failed(
        self,
        file_type: str,
        file_name: str,
        error: str,
        client_id: Optional[UUID] = None,
        user_id: Optional[UUID] = None
    ):
        entry = self._create_log_entry(
            event="upload.failed",
            severity=LogSeverity.ERROR,
            entity_type=LogEntityType.UPLOAD,
            client_id=client_id,
            user_id=user_id,
            message=f"Import {file_type} failed: {error}",
            file_type=file_type,
            file_name=file_name,
            error=error
        )
        self._log(entry, LogSeverity.ERROR)

    # Booking events
    def invoice_booked(
        self,
        client_id: UUID,
        regel_count: int,
        factuurnummer: Optional[str] = None,
        total_amount: Optional[float] = None,
        user_id: Optional[UUID] = None
    ):
        entry = self._create_log_entry(
            event="boekingsregel.invoice_booked",
            severity=LogSeverity.INFO,
            entity_type=LogEntityType.BOEKINGSREGEL,
            client_id=client_id,
            user_id=user_id,
            message=f"Invoice booked: {factuurnummer or 'onbekend'}",
            regel_count=regel_count,
            factuurnummer=factuurnummer,
            total_amount=total_amount
        )
        self._log(entry, LogSeverity.INFO)

    # BTW events
    def aangifte_calculated(
        self,
        aangifte_id: UUID,
        client_id: UUID,
        periode_label: str,
        te_betalen: float,
        transaction_count: int,
        user_id: Optional[UUID] = None
    ):
        entry = self._create_log_entry(
            event="btw_aangifte.calculated",
            severity=LogSeverity.INFO,
            entity_type=LogEntityType.BTW_AANGIFTE,
            entity_id=aangifte_id,
            client_id=client_id,
            user_id=user_id,
            message=f"BTW aangifte calculated: {periode_label}",
            periode=periode_label,
            te_betalen=te_betalen,
            transaction_count=transaction_count
        )
        self._log(entry, LogSeverity.INFO)

    def aangifte_status_changed(
        self,
        aangifte_id: UUID,
        client_id: UUID,
        old_status: str,
        new_status: str,
        user_id: Optional[UUID] = None
    ):
        entry = self._create_log_entry(
            event="btw_aangifte.status_changed",
            severity=LogSeverity.INFO,
            entity_type=LogEntityType.BTW_AANGIFTE,
            entity_id=aangifte_id,
            client_id=client_id,
            user_id=user_id,
            message=f"BTW aangifte status: {old_status} -> {new_status}",
            old_status=old_status,
            new_status=new_status
        )
        self._log(entry, LogSeverity.INFO)

    def aangifte_blocked(
        self,
        aangifte_id: Optional[UUID],
        client_id: UUID,
        attempted_action: str,
        user_id: Optional[UUID] = None
    ):
        """Log an attempt to change an aangifte that is already ingediend."""
        entry = self._create_log_entry(
            event="btw_aangifte.blocked",
            severity=LogSeverity.WARN,
            entity_type=LogEntityType.BTW_AANGIFTE,
            entity_id=aangifte_id,
            client_id=client_id,
            user_id=user_id,
            message="Aangifte is al ingediend",
            attempted_action=attempted_action
        )
        self._log(entry, LogSeverity.WARN)

    # Export events
    def export_generated(
        self,
        export_type: str,
        file_name: str,
        row_count: int,
        client_id: Optional[UUID] = None,
        user_id: Optional[UUID] = None
    ):
        entry = self._create_log_entry(
            event="export.generated",
            severity=LogSeverity.INFO,
            entity_type=LogEntityType.EXPORT,
            client_id=client_id,
            user_id=user_id,
            message=f"Export generated: {file_name}",
            export_type=export_type,
            file_name=file_name,
            row_count=row_count
        )
        self._log(entry, LogSeverity.INFO)

    # System events
    def rate_limit_exceeded(
        self,
        operation: str,
        ip: Optional[str] = None,
        limit: Optional[int] = None
    ):
        entry = self._create_log_entry(
            event="system.rate_limit_exceeded",
            severity=LogSeverity.WARN,
            entity_type=LogEntityType.SYSTEM,
            message=f"Rate limit exceeded for: {operation}",
            operation=operation,
            ip=ip,
            limit=limit
        )
        self._log(entry, LogSeverity.WARN)


# Global logger instance
bookkeeping_logger = StructuredLogger()
