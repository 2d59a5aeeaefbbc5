"""
JSON log formatting used by the ``json`` formatter in ``LOGGING``.
"""
import json
import logging
from datetime import datetime, timezone

# Never emitted even when passed through ``extra={...}``
SENSITIVE_FIELDS = {
    'password',
    'token',
    'refresh',
    'access',
    'secret',
    'notes',
    'content',
    'phone',
    'email',
    'address',
    'date_of_birth',
}

_STANDARD_ATTRS = set(vars(logging.LogRecord('', 0, '', 0, '', (), None))) | {'message', 'asctime'}


class JsonFormatter(logging.Formatter):
    def format(self, record):
        log_entry = {
            'timestamp': datetime.now(timezone.utc).isoformat(),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
        }
        for key, value in record.__dict__.items():
            if key in _STANDARD_ATTRS or key.startswith('_') or key in log_entry:
                continue
            log_entry[key] = '[REDACTED]' if key.lower() in SENSITIVE_FIELDS else value

        if record.exc_info:
            log_entry['exception'] = self.formatException(record.exc_info)

        return json.dumps(log_entry, default=str)
