"""Tests for domain exceptions and their HTTP mapping."""

import pytest

from petstay.core.exceptions import (
    BusinessRuleException,
    ConflictException,
    EntityLockTimeoutException,
    ForbiddenException,
    InsufficientFundsException,
    InvalidTransitionException,
    NotFoundException,
    ServiceException,
    ValidationException,
)


@pytest.mark.parametrize(
    "exc_class,status_code",
    [
        (ValidationException, 400),
        (ForbiddenException, 403),
        (NotFoundException, 404),
        (ConflictException, 409),
        (BusinessRuleException, 422),
        (ServiceException, 500),
    ],
)
def test_status_codes(exc_class, status_code):
    exc = exc_class("message")
    http_exc = exc.to_http_exception()

    assert http_exc.status_code == status_code
    assert http_exc.detail["message"] == "message"
    assert http_exc.detail["code"] == exc_class.__name__


def test_invalid_transition_carries_status():
    exc = InvalidTransitionException("confirm", "cancelled")

    assert exc.code == "INVALID_TRANSITION"
    assert exc.message == "Cannot confirm booking - current status: cancelled"
    assert exc.details == {"action": "confirm", "current_status": "cancelled"}
    assert isinstance(exc, BusinessRuleException)


def test_insufficient_funds_details():
    exc = InsufficientFundsException(9500, 500)

    assert exc.code == "INSUFFICIENT_FUNDS"
    assert exc.details == {"required_cents": 9500, "available_cents": 500}


def test_lock_timeout_is_a_conflict():
    exc = EntityLockTimeoutException("booking:b1:mutex", 1.5)

    assert isinstance(exc, ConflictException)
    assert exc.to_http_exception().status_code == 409
