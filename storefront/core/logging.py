"""
Logging setup

- console output, readable format or one JSON object per line
- optional rotating files (app.log / error.log) when LOG_DIR is set
- business.<module> loggers for order/coupon/payment operations
- audit logger for money-moving events
"""
import json
import logging
import os
import sys
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from typing import Optional

from storefront.core.config import Settings

TEXT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


class JSONFormatter(logging.Formatter):
    """JSON log formatter"""

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)

        if hasattr(record, "extra_data"):
            log_entry.update(record.extra_data)

        return json.dumps(log_entry, ensure_ascii=False, default=str)


def setup_logging(settings: Settings) -> logging.Logger:
    """Configure the root logger from settings"""
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, settings.LOG_LEVEL))

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    if settings.LOG_FORMAT == "json":
        formatter: logging.Formatter = JSONFormatter()
    else:
        formatter = logging.Formatter(TEXT_FORMAT)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    if settings.LOG_DIR:
        os.makedirs(settings.LOG_DIR, exist_ok=True)

        file_handler = RotatingFileHandler(
            os.path.join(settings.LOG_DIR, "app.log"),
            maxBytes=10 * 1024 * 1024,
            backupCount=10,
            encoding="utf-8",
        )
        file_handler.setFormatter(JSONFormatter())
        file_handler.setLevel(logging.INFO)
        root_logger.addHandler(file_handler)

        error_handler = RotatingFileHandler(
            os.path.join(settings.LOG_DIR, "error.log"),
            maxBytes=5 * 1024 * 1024,
            backupCount=5,
            encoding="utf-8",
        )
        error_handler.setFormatter(JSONFormatter())
        error_handler.setLevel(logging.ERROR)
        root_logger.addHandler(error_handler)

    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    if not settings.DB_ECHO:
        logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)

    return root_logger


class BusinessLogger:
    """Business operation logger"""

    def __init__(self, module_name: str):
        self.logger = logging.getLogger(f"business.{module_name}")

    def log_operation(self, operation: str, actor_id: Optional[str] = None, **kwargs):
        message = f"{operation} - Actor: {actor_id or 'system'}"
        if kwargs:
            message += f" - {kwargs}"
        self.logger.info(message, extra={"extra_data": {"operation": operation, "actor_id": actor_id, **kwargs}})

    def log_rejection(self, operation: str, actor_id: Optional[str], reason: str, **kwargs):
        message = f"{operation}_REJECTED - Actor: {actor_id or 'system'} - Reason: {reason}"
        if kwargs:
            message += f" - {kwargs}"
        self.logger.info(message)

    def log_error(self, operation: str, actor_id: Optional[str], error: Exception, **kwargs):
        message = f"{operation}_ERROR - Actor: {actor_id or 'system'} - Error: {str(error)}"
        if kwargs:
            message += f" - {kwargs}"
        self.logger.error(message, exc_info=True)


class AuditLogger:
    """Audit trail for payments and refunds"""

    @staticmethod
    def log_payment_event(event: str, order_id: str, gateway_order_id: str, details: dict = None):
        logger = logging.getLogger("audit")
        message = f"PAYMENT_{event} - Order: {order_id} - GatewayOrder: {gateway_order_id}"
        if details:
            message += f" - Details: {details}"
        logger.info(message)

    @staticmethod
    def log_refund_event(event: str, refund_id: str, order_id: str, details: dict = None):
        logger = logging.getLogger("audit")
        message = f"REFUND_{event} - Refund: {refund_id} - Order: {order_id}"
        if details:
            message += f" - Details: {details}"
        logger.info(message)

    @staticmethod
    def log_security_event(event: str, actor_id: Optional[str], details: dict = None):
        logger = logging.getLogger("audit")
        message = f"SECURITY_{event} - Actor: {actor_id or 'anonymous'}"
        if details:
            message += f" - Details: {details}"
        logger.warning(message)
