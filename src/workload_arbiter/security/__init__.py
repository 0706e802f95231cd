"""Security utilities -- input validation and URL safety."""
from .validators import (
    ValidationError,
    validate_length,
    validate_not_empty,
    validate_identifier,
    validate_key_path,
    validate_process_name,
    validate_fraction,
    validate_url,
    validate_list_size,
)
