"""Validation utilities for the application."""
from typing import Any, Dict, List, Optional

class ValidationError(Exception):
    """Raised when a request is malformed and must be rejected outright."""

    def __init__(self, message: str, errors: Optional[List[str]] = None):
        super().__init__(message)
        self.message = message
        self.errors = errors or [message]

class Validator:
    """Validation helper class."""

    @staticmethod
    def validate_required_fields(data: Dict, required_fields: List[str]) -> Dict[str, Any]:
        """Validate required fields in data."""
        errors = []

        for field in required_fields:
            if field not in data or data[field] in (None, ''):
                errors.append(f"{field} is required")

        return {
            "is_valid": len(errors) == 0,
            "errors": errors
        }

    @staticmethod
    def require_fields(data: Optional[Dict], required_fields: List[str]) -> Dict:
        """Like validate_required_fields, but raise on failure."""
        if not isinstance(data, dict):
            raise ValidationError("Request body must be a JSON object")

        result = Validator.validate_required_fields(data, required_fields)
        if not result['is_valid']:
            raise ValidationError(', '.join(result['errors']), result['errors'])
        return data

    @staticmethod
    def validate_qr_batch(qr_codes: Any, max_size: int) -> List[str]:
        """Check the shape of a batch verification request."""
        if not isinstance(qr_codes, list) or len(qr_codes) == 0:
            raise ValidationError("QR codes array is required")

        if len(qr_codes) > max_size:
            raise ValidationError(f"Maximum {max_size} QR codes per batch")

        return qr_codes

    @staticmethod
    def validate_device_info(device_info: Any) -> Optional[Dict]:
        """Device metadata is optional but must be an object when present."""
        if device_info is None:
            return None
        if not isinstance(device_info, dict):
            raise ValidationError("deviceInfo must be an object")
        return device_info
