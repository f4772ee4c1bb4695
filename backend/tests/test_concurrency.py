import threading
from decimal import Decimal

from sqlalchemy import func, select

from station_ledger.core.errors import InsufficientFunds
from station_ledger.models.journal_entry import DEBIT, JournalEntry
from station_ledger.services import ledger
from station_ledger.services.transfers import transfer


def _run_threads(n: int, target) -> None:
    start = threading.Barrier(n)

    def _worker(i: int):
        start.wait()
        target(i)

    threads = [threading.Thread(target=_worker, args=(i,)) for i in range(n)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=60)
    assert not any(t.is_alive() for t in threads)


def test_concurrent_debits_never_overdraw(session, session_factory, make_account):
    acct_id = make_account("1000").id
    results = {"ok": 0, "insufficient": 0, "other": []}
    lock = threading.Lock()

    def _debit(i: int):
        s = session_factory()
        try:
            ledger.apply_delta(s, acct_id, "100", DEBIT, description=f"debit {i}")
            with lock:
                results["ok"] += 1
        except InsufficientFunds:
            with lock:
                results["insufficient"] += 1
        except Exception as e:
            with lock:
                results["other"].append(e)
        finally:
            s.close()

    _run_threads(16, _debit)

    assert results["other"] == []
    assert results["ok"] == 10
    assert results["insufficient"] == 6

    session.expire_all()
    assert ledger.get_account(session, acct_id).current_balance == Decimal("0.00")
    n = session.execute(select(func.count(JournalEntry.id)).where(JournalEntry.account_id == acct_id)).scalar_one()
    assert n == 10
    assert ledger.verify_account(session, acct_id).consistent


def test_opposing_transfers_do_not_deadlock(session, session_factory, make_account):
    a_id = make_account("500").id
    b_id = make_account("500").id
    errors = []

    def _move(i: int):
        s = session_factory()
        try:
            if i % 2:
                transfer(s, a_id, b_id, "10", f"a->b {i}")
            else:
                transfer(s, b_id, a_id, "10", f"b->a {i}")
        except Exception as e:
            errors.append(e)
        finally:
            s.close()

    _run_threads(12, _move)

    assert errors == []
    session.expire_all()
    total = ledger.get_account(session, a_id).current_balance + ledger.get_account(session, b_id).current_balance
    assert total == Decimal("1000.00")
    assert ledger.verify_account(session, a_id).consistent
    assert ledger.verify_account(session, b_id).consistent
