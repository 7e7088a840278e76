from ...constants import COL_BALANCES, BALANCE_ACCOUNTS
from ...utils.helpers import utc_now


def seed(store):
    # money accounts must exist before the first settlement; never overwrite
    refs = [store.collection(COL_BALANCES).document(a) for a in BALANCE_ACCOUNTS]

    def create_missing(txn):
        missing = [ref for ref in refs if not txn.get(ref).exists]
        for ref in missing:
            txn.set(ref, {"amount": 0.0, "updatedAt": utc_now()})
        return len(missing)

    return store.run_transaction(create_missing)
