from phone_pos.constants import COL_CUSTOMERS, COL_MIDDLEMEN
from phone_pos.database.repositories import BalancesRepo, EntitiesRepo, EntityRole
from phone_pos.database.document_store import StoreError
from phone_pos.database.repositories.entities_repo import balance_field, parse_balance


def test_balance_fallback_chain():
    assert parse_balance({"balance": 1, "Balance": 2}) == 1
    assert parse_balance({"Balance": "2.5"}) == 2.5
    assert parse_balance({"accountBalance": 3}) == 3
    assert parse_balance({"AccountBalance": -4}) == -4
    assert parse_balance({"balance": None, "AccountBalance": 7}) == 7
    assert balance_field({"balance": None, "AccountBalance": 7}) == "AccountBalance"


def test_missing_balance_is_unknown_not_zero():
    assert parse_balance({}) is None
    assert parse_balance({"balance": "n/a"}) is None
    assert parse_balance(None) is None
    assert balance_field({"name": "x"}) is None


def test_list_all_sorted_by_role_then_name(store, seeded):
    store.set(store.collection(COL_CUSTOMERS).document("z"), {"name": "zed", "accountBalance": 1})
    store.set(store.collection(COL_MIDDLEMEN).document("a"), {"name": "Amy"})

    entities, had_error = EntitiesRepo(store).list_all()
    assert not had_error
    assert [(e.role, e.name) for e in entities] == [
        (EntityRole.MIDDLEMAN, "Amy"),
        (EntityRole.MIDDLEMAN, "Bob"),
        (EntityRole.CUSTOMER, "Alice"),
        (EntityRole.CUSTOMER, "zed"),
        (EntityRole.SUPPLIER, "Carol"),
    ]
    by_name = {e.name: e for e in entities}
    assert by_name["Amy"].balance is None
    assert by_name["zed"].balance == 1
    assert by_name["Carol"].balance == 5.0


def test_list_all_keeps_partial_results_on_error(store, seeded, monkeypatch):
    repo = EntitiesRepo(store)
    real = repo.list_role

    def flaky(role):
        if role is EntityRole.SUPPLIER:
            raise StoreError("offline")
        return real(role)

    monkeypatch.setattr(repo, "list_role", flaky)
    entities, had_error = repo.list_all()
    assert had_error
    assert {e.name for e in entities} == {"Alice", "Bob"}


def test_find_by_name_is_exact_and_role_scoped(store, seeded):
    repo = EntitiesRepo(store)
    assert repo.find_by_name(EntityRole.CUSTOMER, "Alice").reference == seeded["customer_ref"]
    assert repo.find_by_name(EntityRole.CUSTOMER, "alice") is None
    assert repo.find_by_name(EntityRole.MIDDLEMAN, "Alice") is None


# --------------------------- inventory ---------------------------

def test_quick_add_builds_hierarchy_and_index(store, seeded, inventory, phone):
    refs = inventory.add_phones(phone(model="iPhone 13", imeis=("a1", "a2"), color="Black"))
    assert len(refs) == 2

    brand = inventory.find_brand("Apple")
    model = inventory.find_model(brand.reference, "iPhone 13")
    assert model is not None
    assert inventory.find_phone(model.reference, "a2").reference == refs[1]
    assert inventory.find_imei_entry("a1").get("phoneReference") == refs[0]

    # existing brand and color documents are reused
    assert len(store.query(store.collection("PhoneBrands"))) == 1
    assert len(store.query(store.collection("Colors"))) == 1


def test_inventory_lookups_miss_cleanly(inventory, seeded):
    assert inventory.find_brand("Nokia-X") is None
    assert inventory.find_imei_entries("nope") == []


# --------------------------- balances ---------------------------

def test_balances_repo_amounts(store):
    repo = BalancesRepo(store)
    assert repo.amounts() == {"cash": 0.0, "bank": 0.0, "creditCard": 0.0}
    store.delete(repo.ref("bank"))
    assert repo.amounts()["bank"] is None
