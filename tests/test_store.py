"""
Unit tests for the catalog stores: CRUD, ordering, live pushes and JSONL persistence.
"""

import json
import threading
import time

import pytest

from cinecritic.bridge import CatalogBridge
from cinecritic.errors import NotFoundError, StoreError
from cinecritic.store import InMemoryCatalogStore, JsonlCatalogStore

from conftest import BASE_TIME, StepClock, make_form


def fields(**overrides):
	return make_form(**overrides).to_fields()


def test_create_assigns_id_and_timestamp():
	store = InMemoryCatalogStore(clock=StepClock())
	entry_id = store.create(fields(title="Nova"))
	entry = store.get(entry_id)
	assert entry.id == entry_id
	assert entry.created_at > BASE_TIME
	assert entry.title == "Nova"


def test_snapshot_is_newest_first():
	store = InMemoryCatalogStore(clock=StepClock())
	for title in ("First", "Second", "Third"):
		store.create(fields(title=title))
	assert [e.title for e in store.list_entries()] == ["Third", "Second", "First"]


def test_same_tick_inserts_keep_insertion_order():
	store = InMemoryCatalogStore(clock=lambda: BASE_TIME)  # frozen clock
	store.create(fields(title="A"))
	store.create(fields(title="B"))
	a, b = sorted(store.list_entries(), key=lambda e: e.title)
	assert b.created_at > a.created_at
	assert [e.title for e in store.list_entries()] == ["B", "A"]


def test_update_keeps_id_and_created_at():
	store = InMemoryCatalogStore(clock=StepClock())
	entry_id = store.create(fields(title="Nova", rating=3.0))
	before = store.get(entry_id)
	store.update(entry_id, fields(title="Nova (Director's Cut)", rating=4.5))
	after = store.get(entry_id)
	assert after.title == "Nova (Director's Cut)"
	assert after.rating == 4.5
	assert after.id == before.id
	assert after.created_at == before.created_at


def test_update_rejects_store_owned_fields():
	store = InMemoryCatalogStore(clock=StepClock())
	entry_id = store.create(fields())
	with pytest.raises(ValueError):
		store.update(entry_id, {'created_at': BASE_TIME})


def test_missing_ids_raise_not_found():
	store = InMemoryCatalogStore()
	with pytest.raises(NotFoundError):
		store.get('nope')
	with pytest.raises(NotFoundError):
		store.update('nope', fields())
	with pytest.raises(NotFoundError):
		store.delete('nope')


def test_subscribers_get_initial_and_every_change():
	store = InMemoryCatalogStore(clock=StepClock())
	pushes = []
	unsubscribe = store.subscribe(lambda snapshot: pushes.append([e.title for e in snapshot]))
	entry_id = store.create(fields(title="Nova"))
	store.delete(entry_id)
	assert pushes == [[], ["Nova"], []]

	unsubscribe()
	unsubscribe()  # second call is harmless
	store.create(fields(title="Later"))
	assert len(pushes) == 3
	assert store.subscriber_count() == 0


def test_failing_subscriber_does_not_break_writes():
	store = InMemoryCatalogStore(clock=StepClock())
	errors = []

	def explode(snapshot):
		if snapshot:
			raise RuntimeError("boom")

	store.subscribe(explode, errors.append)
	entry_id = store.create(fields())
	assert store.get(entry_id)
	assert len(errors) == 1 and isinstance(errors[0], StoreError)


def test_concurrent_writers_leave_subscribers_on_latest_snapshot():
	store = InMemoryCatalogStore(clock=StepClock())
	release = threading.Event()
	first_writer = threading.current_thread()

	def slow_subscriber(snapshot):
		# holds up the delivery of the one-entry snapshot made by the first writer
		if len(snapshot) == 1 and threading.current_thread() is first_writer:
			release.wait(timeout=5)

	store.subscribe(slow_subscriber)
	bridge = CatalogBridge(store)

	def write(title):
		store.create(fields(title=title))

	with bridge.open():
		first_writer = threading.Thread(target=write, args=("Nova",))
		first_writer.start()
		for _ in range(500):  # wait until the first writer is stuck in delivery
			if len(store) == 1:
				break
			time.sleep(0.01)
		second_writer = threading.Thread(target=write, args=("Bloodline",))
		second_writer.start()
		for _ in range(500):  # second commit lands while the first delivery is held
			if len(store) == 2:
				break
			time.sleep(0.01)
		release.set()
		first_writer.join(timeout=5)
		second_writer.join(timeout=5)

		assert len(store.list_entries()) == 2
		assert bridge.catalog == store.list_entries()


def test_write_from_a_subscriber_is_not_overtaken_by_older_snapshot():
	store = InMemoryCatalogStore(clock=StepClock())

	def add_sequel(snapshot):
		if [e.title for e in snapshot] == ["Nova"]:
			store.create(fields(title="Nova 2"))

	store.subscribe(add_sequel)
	last_seen = []
	store.subscribe(lambda snapshot: last_seen.append([e.title for e in snapshot]))
	store.create(fields(title="Nova"))
	assert last_seen[-1] == ["Nova 2", "Nova"]
	assert ["Nova"] not in last_seen  # the superseded snapshot is never delivered late


def test_jsonl_store_round_trips_through_file(tmp_path):
	path = tmp_path / 'catalog.jsonl'
	store = JsonlCatalogStore(str(path), clock=StepClock())
	first = store.create(fields(title="Nova"))
	second = store.create(fields(title="Bloodline", genres=frozenset({'Horror'}), censor_rating='A'))
	store.update(first, fields(title="Nova", rating=4.8))

	reopened = JsonlCatalogStore(str(path))
	assert [e.id for e in reopened.list_entries()] == [second, first]
	assert reopened.get(first).rating == 4.8
	assert reopened.get(second).genres == frozenset({'Horror'})
	assert reopened.get(first).created_at == store.get(first).created_at


def test_jsonl_store_skips_bad_lines(tmp_path):
	path = tmp_path / 'catalog.jsonl'
	good = {
		'id': 'abc', 'title': 'Nova', 'genres': ['Sci-Fi'], 'languages': ['English'], 'censor': 'U',
		'rating': 4.2, 'poster': 'https://img.example.com/nova.jpg', 'review': 'Good.',
		'created_at': '2024-01-01T00:00:00+00:00',
	}
	path.write_text(json.dumps(good) + '\n{not json}\n' + json.dumps({'title': 'no id'}) + '\n', encoding='utf-8')
	store = JsonlCatalogStore(str(path))
	assert [e.id for e in store.list_entries()] == ['abc']


def test_jsonl_write_failure_leaves_state_untouched(tmp_path):
	blocker = tmp_path / 'not-a-dir'
	blocker.write_text('x', encoding='utf-8')
	store = JsonlCatalogStore(str(blocker / 'catalog.jsonl'))  # parent is a file: writes fail
	pushes = []
	store.subscribe(pushes.append)
	with pytest.raises(StoreError):
		store.create(fields())
	assert store.list_entries() == ()
	assert pushes == [()]  # only the initial snapshot
