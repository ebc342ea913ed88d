"""
Tests for the transaction status state machine.

These tests verify:
  - The three legal edges advance
  - Outcomes already in effect are duplicates, not errors
  - Every other (status, outcome) pair is illegal
"""

import pytest

from marketplace_payments.models.gateway_event import GatewayOutcome
from marketplace_payments.models.transaction import TransactionStatus
from marketplace_payments.services.state_machine import (
    OUTCOME_FOR_TARGET,
    TRANSITIONS,
    Verdict,
    evaluate,
)

PENDING = TransactionStatus.PENDING
COMPLETED = TransactionStatus.COMPLETED
FAILED = TransactionStatus.FAILED
REFUNDED = TransactionStatus.REFUNDED

SUCCEEDED = GatewayOutcome.SUCCEEDED
FAILURE = GatewayOutcome.FAILED
REFUND = GatewayOutcome.REFUNDED


@pytest.mark.parametrize(
    "current, outcome, expected",
    [
        (PENDING, SUCCEEDED, COMPLETED),
        (PENDING, FAILURE, FAILED),
        (COMPLETED, REFUND, REFUNDED),
    ],
)
def test_legal_edges_advance(current, outcome, expected):
    assert evaluate(current, outcome) == (Verdict.ADVANCE, expected)


@pytest.mark.parametrize(
    "current, outcome",
    [
        (COMPLETED, SUCCEEDED),
        (REFUNDED, SUCCEEDED),
        (FAILED, FAILURE),
        (REFUNDED, REFUND),
    ],
)
def test_redelivered_outcomes_are_duplicates(current, outcome):
    assert evaluate(current, outcome) == (Verdict.DUPLICATE, None)


@pytest.mark.parametrize(
    "current, outcome",
    [
        (COMPLETED, FAILURE),
        (REFUNDED, FAILURE),
        (FAILED, SUCCEEDED),
        (FAILED, REFUND),
        (PENDING, REFUND),
    ],
)
def test_everything_else_is_illegal(current, outcome):
    assert evaluate(current, outcome) == (Verdict.ILLEGAL, None)


def test_nothing_leads_back_to_pending():
    assert PENDING not in TRANSITIONS.values()
    assert PENDING not in OUTCOME_FOR_TARGET


def test_transition_table_is_closed():
    """Only the three documented edges exist."""
    assert len(TRANSITIONS) == 3
