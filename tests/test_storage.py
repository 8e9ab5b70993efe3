from __future__ import annotations

import json

from velvet_wallet import config
from velvet_wallet.storage import LocalStorage
from velvet_wallet.stores import EntryStore, GoalStore


def _entry_rows():
    return [
        {'id': 't1', 'amount': 1000, 'category': 'Доход', 'date': '2024-01-05', 'user': 'Мария', 'note': '', 'type': 'income'},
        {'id': 't2', 'amount': 400, 'category': 'Еда', 'date': '2024-01-10', 'user': 'Общее', 'note': 'рынок', 'type': 'expense'},
    ]


def test_missing_slots_fall_back_to_defaults(tmp_path, monkeypatch):
    monkeypatch.delenv('VELVET_GEMINI_API_KEY', raising=False)
    storage = LocalStorage(tmp_path)
    assert storage.load_transactions() == EntryStore()
    assert storage.load_plans() == GoalStore.default()
    assert storage.load_api_key() == ''


def test_transactions_round_trip(tmp_path):
    storage = LocalStorage(tmp_path)
    store = EntryStore.from_dicts(_entry_rows())
    storage.save_transactions(store)

    assert (tmp_path / 'velvet_tx.json').exists()
    assert storage.load_transactions() == store


def test_plans_round_trip_including_empty_list(tmp_path):
    storage = LocalStorage(tmp_path)
    goals = GoalStore.default().remove_plan('p3')
    storage.save_plans(goals)
    assert storage.load_plans() == goals

    storage.save_plans(GoalStore())
    assert storage.load_plans() == GoalStore()


def test_corrupt_slots_fall_back_to_defaults(tmp_path):
    (tmp_path / 'velvet_tx.json').write_text('{not json', encoding='utf-8')
    (tmp_path / 'velvet_plans.json').write_text('{"plans": []}', encoding='utf-8')
    storage = LocalStorage(tmp_path)
    assert storage.load_transactions() == EntryStore()
    assert storage.load_plans() == GoalStore.default()


def test_invalid_records_are_skipped(tmp_path):
    rows = _entry_rows() + [
        {'id': 't3', 'amount': 'много', 'category': 'Еда', 'date': '2024-01-11', 'user': 'Мария', 'type': 'expense'},
        {'id': 't4', 'amount': 5, 'category': 'Еда', 'date': '2024-01-11', 'user': 'Мария', 'type': 'income'},
    ]
    (tmp_path / 'velvet_tx.json').write_text(json.dumps(rows, ensure_ascii=False), encoding='utf-8')
    store = LocalStorage(tmp_path).load_transactions()
    assert [entry.id for entry in store] == ['t1', 't2']


def test_api_key_slot_and_environment_fallback(tmp_path, monkeypatch):
    monkeypatch.setenv('VELVET_GEMINI_API_KEY', 'env-key')
    storage = LocalStorage(tmp_path)
    assert storage.load_api_key() == 'env-key'

    storage.save_api_key('saved-key')
    assert storage.load_api_key() == 'saved-key'


def test_repeated_entry_ids_keep_the_first_record(tmp_path):
    rows = _entry_rows() + [dict(_entry_rows()[0], amount=5)]
    (tmp_path / 'velvet_tx.json').write_text(json.dumps(rows, ensure_ascii=False), encoding='utf-8')
    store = LocalStorage(tmp_path).load_transactions()
    assert [entry.id for entry in store] == ['t1', 't2']
    assert store.get('t1').amount == 1000


def test_saving_creates_missing_data_directory(tmp_path):
    data_dir = tmp_path / 'nested' / 'data'
    storage = LocalStorage(data_dir)
    storage.save_api_key('secret')
    assert data_dir.is_dir()
    assert json.loads((data_dir / 'velvet_key.json').read_text(encoding='utf-8')) == 'secret'


def test_ensure_data_directories_defaults_to_configured_dir(tmp_path, monkeypatch):
    monkeypatch.setattr(config, 'DATA_DIR', tmp_path / 'configured')
    assert config.ensure_data_directories() == tmp_path / 'configured'
    assert (tmp_path / 'configured').is_dir()
