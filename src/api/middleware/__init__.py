from .credit_gate import (
    CREDIT_VALIDATORS,
    CreditValidationOptions,
    add_credit_info_to_headers,
    create_credit_validator,
    get_credit_info_from_headers,
    requires_credits,
    with_credit_validation,
)

__all__ = [
    "CREDIT_VALIDATORS",
    "CreditValidationOptions",
    "add_credit_info_to_headers",
    "create_credit_validator",
    "get_credit_info_from_headers",
    "requires_credits",
    "with_credit_validation",
]
