from datetime import date, timedelta
from decimal import Decimal
from random import Random

from station_ledger.core.errors import InsufficientFunds
from station_ledger.models.journal_entry import CREDIT, DEBIT
from station_ledger.services import ledger
from station_ledger.services.transfers import transfer


def _rand_amount(rng: Random, lo: int, hi: int) -> Decimal:
    cents = rng.randint(lo * 100, hi * 100)
    return Decimal(cents) / Decimal(100)


def test_randomized_balances_always_match_journal(session, make_account):
    rng = Random(1337)

    accounts = [make_account(str(rng.randint(0, 5000))) for _ in range(4)]
    expected = {a.id: Decimal(str(a.opening_balance)) for a in accounts}
    ids = list(expected)

    d0 = date(2024, 1, 1)
    rejected = 0
    for step in range(300):
        op = rng.choice(["deposit", "withdraw", "transfer"])
        day = d0 + timedelta(days=rng.randint(0, 180))
        amt = _rand_amount(rng, 1, 1500)

        if op == "deposit":
            acct = rng.choice(ids)
            ledger.apply_delta(session, acct, amt, CREDIT, entry_date=day)
            expected[acct] += amt
        elif op == "withdraw":
            acct = rng.choice(ids)
            try:
                ledger.apply_delta(session, acct, amt, DEBIT, entry_date=day)
                expected[acct] -= amt
            except InsufficientFunds:
                assert expected[acct] < amt
                rejected += 1
        else:
            src, dst = rng.sample(ids, 2)
            try:
                transfer(session, src, dst, amt, f"move {step}", entry_date=day)
                expected[src] -= amt
                expected[dst] += amt
            except InsufficientFunds:
                assert expected[src] < amt
                rejected += 1

        if step % 25 == 0:
            for check in ledger.verify_all(session):
                assert check.consistent, check

    assert rejected > 0

    for acct_id, bal in expected.items():
        assert bal >= 0
        assert ledger.get_account(session, acct_id).current_balance == bal
        assert ledger.journal_balance(session, acct_id) == bal
        check = ledger.verify_account(session, acct_id)
        assert check.consistent
        assert check.chain_breaks == []
