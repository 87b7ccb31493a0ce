"""
Pro-rata distribution: floor rounding, retained dust, snapshot order,
over-allocation funded from the contract balance, and all-or-nothing failure.
"""
from __future__ import annotations

import pytest

from vouchers.errors import TransferFailed
from vouchers.settlement import Pool, SettlementDistributor, ShareRegistry, entitlement, plan_split

A = bytes.fromhex("a1" * 20)
B = bytes.fromhex("b2" * 20)
C = bytes.fromhex("c3" * 20)
CONTRACT = bytes.fromhex("ee" * 20)
PAYER = bytes.fromhex("f0" * 20)


@pytest.fixture
def shares(host):
    return ShareRegistry(host, CONTRACT)


@pytest.fixture
def dist(host, shares):
    return SettlementDistributor(host, CONTRACT, shares)


def _pay(host, dist, pool, amount):
    """Attach `amount` from PAYER to the contract and distribute it in one call."""
    return host.execute(PAYER, CONTRACT, lambda: dist.distribute(pool, amount), value=amount)


@pytest.mark.parametrize(
    "amount, expected",
    [(100, (60, 40)), (101, (60, 40)), (99, (59, 39)), (1, (0, 0)), (0, (0, 0))],
)
def test_plan_floor(amount, expected):
    plan = plan_split("primary", amount, [(A, 60), (B, 40)])
    assert tuple(p.amount for p in plan.payouts) == expected
    assert plan.retained == amount - sum(expected)


def test_entitlement_rejects_negatives():
    assert entitlement(101, 60) == 60
    with pytest.raises(ValueError):
        entitlement(-1, 10)


def test_sixty_forty_with_100(host, shares, dist):
    shares.add_payee("primary", A, 60)
    shares.add_payee("primary", B, 40)
    host.mint(PAYER, 100)
    plan = _pay(host, dist, "primary", 100)
    assert (host.balance_of(A), host.balance_of(B)) == (60, 40)
    assert host.balance_of(CONTRACT) == 0
    assert plan.distributed == 100 and plan.retained == 0


def test_sixty_forty_with_101_retains_one(host, shares, dist):
    shares.add_payee("primary", A, 60)
    shares.add_payee("primary", B, 40)
    host.mint(PAYER, 101)
    _pay(host, dist, Pool.PRIMARY, 101)
    assert (host.balance_of(A), host.balance_of(B)) == (60, 40)
    assert host.balance_of(CONTRACT) == 1

    released = host.events.iter_events(b"PaymentReleased")
    assert [e.args["payee"] for e in released] == [A, B]
    (split,) = host.events.iter_events(b"PaymentSplit")
    assert split.args == {"pool": "primary", "amount": 101, "distributed": 100, "retained": 1}


def test_zero_entitlements_are_skipped(host, shares, dist):
    shares.add_payee("primary", A, 1)
    shares.add_payee("primary", B, 99)
    host.mint(PAYER, 50)
    _pay(host, dist, "primary", 50)
    assert host.balance_of(A) == 0
    assert host.balance_of(B) == 49
    assert len(host.events.iter_events(b"PaymentReleased")) == 1


def test_over_allocation_draws_from_retained_balance(host, shares, dist):
    shares.add_payee("primary", A, 70)
    shares.add_payee("primary", B, 40)
    host.mint(CONTRACT, 25)
    host.mint(PAYER, 100)
    plan = _pay(host, dist, "primary", 100)
    assert (host.balance_of(A), host.balance_of(B)) == (70, 40)
    assert plan.retained == -10
    assert host.balance_of(CONTRACT) == 15


def test_over_allocation_without_reserve_fails_atomically(host, shares, dist):
    shares.add_payee("primary", A, 70)
    shares.add_payee("primary", B, 40)
    host.mint(PAYER, 100)
    with pytest.raises(TransferFailed):
        _pay(host, dist, "primary", 100)
    assert host.balance_of(A) == 0
    assert host.balance_of(PAYER) == 100
    assert host.balance_of(CONTRACT) == 0


def test_rejecting_recipient_rolls_back_earlier_payouts(host, shares, dist):
    shares.add_payee("secondary", A, 50)
    shares.add_payee("secondary", B, 50)
    host.register_receiver(B, lambda h, sender, amount: False)
    host.mint(PAYER, 10)
    with pytest.raises(TransferFailed):
        _pay(host, dist, "secondary", 10)
    assert host.balance_of(A) == 0
    assert host.balance_of(PAYER) == 10
    assert host.events.iter_events(b"PaymentReleased") == ()


def test_recipient_mutating_pool_does_not_affect_in_flight_split(host, shares, dist):
    shares.add_payee("primary", A, 50)
    shares.add_payee("primary", B, 50)

    def hook(h, sender, amount):
        shares.remove_payee("primary", B)
        shares.add_payee("primary", C, 50)
        return True

    host.register_receiver(A, hook)
    host.mint(PAYER, 10)
    _pay(host, dist, "primary", 10)
    assert (host.balance_of(A), host.balance_of(B), host.balance_of(C)) == (5, 5, 0)
    assert shares.list_payees("primary") == [A, C]


def test_distribute_outside_a_call_is_refused(shares, dist):
    with pytest.raises(RuntimeError):
        dist.distribute("primary", 1)
