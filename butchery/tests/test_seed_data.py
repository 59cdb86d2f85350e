from butchery.data.backends.json_backend import JsonFileRecordStore
from butchery.data.repositories import Repositories
from butchery.seed_data import main
from butchery.services.orders import history_is_legal


def test_seed_writes_a_consistent_store(tmp_path, capsys):
    assert main(["--data-dir", str(tmp_path), "--customers", "4", "--orders", "15", "--seed", "7"]) == 0
    assert "Generated storefront" in capsys.readouterr().out

    repos = Repositories.from_store(JsonFileRecordStore(data_dir=tmp_path))
    codes = {p.code for p in repos.promos.list()}
    assert {"WELCOME10", "SAVE20", "MEAT15", "FIRSTORDER", "FRESH20", "MEAT50", "EIDJOY"} <= codes

    orders = repos.orders.list()
    assert orders
    for order in orders:
        assert order.totals_consistent()
        assert history_is_legal(order)
    for account in repos.ledgers.list():
        assert account.is_consistent()
    for tracking in repos.trackings.list():
        if tracking.status == "delivered":
            assert repos.orders.get(tracking.order_id).status in ("delivered", "refunded")


def test_seed_refuses_to_overwrite(tmp_path, capsys):
    assert main(["--data-dir", str(tmp_path), "--orders", "1"]) == 0
    assert main(["--data-dir", str(tmp_path), "--orders", "1", "--no-overwrite"]) == 2
    assert "Refusing to overwrite" in capsys.readouterr().err
