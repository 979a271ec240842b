"""
Logging configuration for the movie reservation engine.
"""

import json
import logging
import logging.config
import sys
from datetime import datetime, timezone
from typing import Dict, Any, Optional
from pathlib import Path

from ..config import get_settings

APP_LOGGER = "movie_reservation_engine"


def setup_logging(
    log_level: str = "INFO",
    log_file: Optional[str] = None,
    enable_json_logging: bool = False
) -> None:
    """
    Set up logging configuration.
    
    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Optional log file path
        enable_json_logging: Enable JSON formatted logs
    """
    settings = get_settings()
    
    # Create logs directory if logging to file
    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
    
    config = {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "standard": {
                "format": "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
                "datefmt": "%Y-%m-%d %H:%M:%S"
            },
            "detailed": {
                "format": (
                    "%(asctime)s [%(levelname)s] %(name)s:%(lineno)d "
                    "[%(request_id)s] %(message)s"
                ),
                "datefmt": "%Y-%m-%d %H:%M:%S"
            },
            "json": {
                "()": f"{APP_LOGGER}.utils.logging_config.JSONFormatter",
                "format": "%(asctime)s %(levelname)s %(name)s %(message)s"
            }
        },
        "filters": {
            "request_id": {
                "()": f"{APP_LOGGER}.utils.logging_config.RequestIDFilter"
            }
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "level": log_level,
                "formatter": "json" if enable_json_logging else "detailed",
                "stream": sys.stdout,
                "filters": ["request_id"]
            }
        },
        "loggers": {
            # Application loggers
            APP_LOGGER: {
                "level": log_level,
                "handlers": ["console"],
                "propagate": False
            },
            
            # FastAPI and Uvicorn
            "uvicorn": {
                "level": "INFO",
                "handlers": ["console"],
                "propagate": False
            },
            "uvicorn.access": {
                "level": "INFO",
                "handlers": ["console"],
                "propagate": False
            },
            
            # Database
            "sqlalchemy.engine": {
                "level": "WARNING",
                "handlers": ["console"],
                "propagate": False
            },
            "sqlalchemy.pool": {
                "level": "WARNING",
                "handlers": ["console"],
                "propagate": False
            },
            
            "redis": {
                "level": "WARNING",
                "handlers": ["console"],
                "propagate": False
            },
            
            "celery": {
                "level": "INFO",
                "handlers": ["console"],
                "propagate": False
            }
        },
        "root": {
            "level": log_level,
            "handlers": ["console"]
        }
    }
    
    if log_file:
        config["handlers"]["file"] = {
            "class": "logging.handlers.RotatingFileHandler",
            "level": log_level,
            "formatter": "json" if enable_json_logging else "detailed",
            "filename": log_file,
            "maxBytes": 10 * 1024 * 1024,  # 10MB
            "backupCount": 5,
            "filters": ["request_id"]
        }
        
        for logger_config in config["loggers"].values():
            logger_config["handlers"].append("file")
        
        config["root"]["handlers"].append("file")
    
    # Separate error log in production
    if settings.environment == "production":
        error_file = log_file.replace(".log", "_errors.log") if log_file else "logs/errors.log"
        Path(error_file).parent.mkdir(parents=True, exist_ok=True)
        
        config["handlers"]["error_file"] = {
            "class": "logging.handlers.RotatingFileHandler",
            "level": "ERROR",
            "formatter": "json" if enable_json_logging else "detailed",
            "filename": error_file,
            "maxBytes": 10 * 1024 * 1024,  # 10MB
            "backupCount": 10,
            "filters": ["request_id"]
        }
        
        config["loggers"][APP_LOGGER]["handlers"].append("error_file")
    
    logging.config.dictConfig(config)


class RequestIDFilter(logging.Filter):
    """Filter to add request ID to log records."""
    
    def filter(self, record):
        request_id = getattr(record, 'request_id', None)
        
        if not request_id:
            from ..middleware.logging import request_id_var
            request_id = request_id_var.get()
        
        record.request_id = request_id
        return True


class JSONFormatter(logging.Formatter):
    """JSON formatter for structured logging."""
    
    RESERVED_ATTRS = {
        'name', 'msg', 'args', 'levelname', 'levelno', 'pathname',
        'filename', 'module', 'lineno', 'funcName', 'created',
        'msecs', 'relativeCreated', 'thread', 'threadName',
        'processName', 'process', 'getMessage', 'exc_info',
        'exc_text', 'stack_info', 'request_id', 'taskName', 'message'
    }
    
    def format(self, record):
        log_entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }
        
        if hasattr(record, 'request_id'):
            log_entry["request_id"] = record.request_id
        
        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)
        
        # Everything passed through ``extra=``
        extra_fields = {
            key: value
            for key, value in record.__dict__.items()
            if key not in self.RESERVED_ATTRS
        }
        
        if extra_fields:
            log_entry["extra"] = extra_fields
        
        return json.dumps(log_entry, default=str, ensure_ascii=False)


def get_logger(name: str) -> logging.Logger:
    """Get a logger with the specified name."""
    return logging.getLogger(name)


def log_performance(operation_name: str, duration: float, **kwargs):
    """Log performance metrics."""
    logger = get_logger(f"{APP_LOGGER}.performance")
    logger.info(
        f"Performance: {operation_name} completed in {duration:.4f}s",
        extra={
            "operation": operation_name,
            "duration": duration,
            "performance_metric": True,
            **kwargs
        }
    )


def log_business_event(event_type: str, details: Dict[str, Any], user_id: Optional[str] = None):
    """Log reservation and scheduling events."""
    logger = get_logger(f"{APP_LOGGER}.business")
    logger.info(
        f"Business event: {event_type}",
        extra={
            "event_type": event_type,
            "business_event": True,
            "user_id": user_id,
            **details
        }
    )
