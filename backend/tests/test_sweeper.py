from datetime import timedelta

from lobby import create_app, db, socketio
from lobby.models import Room, Player, User, utcnow
from lobby.services.rooms import SessionContext, repository
from lobby.services.rooms import sweeper
from lobby.services.rooms.stats import get_room_count


def _age(room_id, minutes):
    room = db.session.get(Room, room_id, populate_existing=True)
    room.waiting_since = utcnow() - timedelta(minutes=minutes)
    db.session.commit()


def test_selection_scenario(app_ctx, alice, bob, cara):
    lonely = repository.create_room(alice, 'Alice')['room_id']
    busy = repository.create_room(bob, 'Bob')['room_id']
    repository.join_room(cara, busy, 'Cara')
    fresh_host = repository.create_room(SessionContext(uid='dora'), 'Dora')['room_id']

    _age(lonely, 11)
    _age(busy, 60)
    _age(fresh_host, 5)

    selected = {room.id for room in sweeper.select_stale_rooms()}
    assert selected == {lonely}


def test_sweep_deletes_room_players_and_pointers(app_ctx, alice, bob):
    room_id = repository.create_room(alice, 'Alice')['room_id']
    repository.join_room(bob, room_id, 'Bob')
    repository.leave_room(bob, room_id)
    _age(room_id, 11)

    result = sweeper.sweep_stale_rooms()

    assert result == {'selected': 1, 'deleted': 1, 'failed': []}
    assert db.session.get(Room, room_id) is None
    assert Player.query.filter_by(room_id=room_id).count() == 0
    assert db.session.get(User, 'alice', populate_existing=True).active_room_id is None
    # Alice can start over
    assert repository.create_room(alice, 'Alice')['is_host'] is True


def test_sweep_with_explicit_clock(app_ctx, alice):
    room_id = repository.create_room(alice, 'Alice')['room_id']
    later = utcnow() + timedelta(minutes=11)
    assert [room.id for room in sweeper.select_stale_rooms(now=later)] == [room_id]
    assert sweeper.sweep_stale_rooms(now=utcnow())['selected'] == 0
    assert sweeper.sweep_stale_rooms(now=later)['deleted'] == 1


def test_join_after_selection_keeps_room(app_ctx, alice, bob):
    room_id = repository.create_room(alice, 'Alice')['room_id']
    _age(room_id, 11)
    cutoff = utcnow() - timedelta(minutes=10)
    assert [room.id for room in sweeper.select_stale_rooms()] == [room_id]

    repository.join_room(bob, room_id, 'Bob')

    assert sweeper.delete_room(room_id, cutoff=cutoff) is False
    assert db.session.get(Room, room_id, populate_existing=True).player_count == 2


def test_failed_room_does_not_block_others(app_ctx, monkeypatch, alice, bob):
    first = repository.create_room(alice, 'Alice')['room_id']
    second = repository.create_room(bob, 'Bob')['room_id']
    _age(first, 20)
    _age(second, 20)
    real_delete = sweeper.delete_room

    def flaky_delete(room_id, cutoff=None):
        if room_id == first:
            raise RuntimeError('store unavailable')
        return real_delete(room_id, cutoff=cutoff)

    monkeypatch.setattr(sweeper, 'delete_room', flaky_delete)
    result = sweeper.sweep_stale_rooms()

    assert result['selected'] == 2
    assert result['deleted'] == 1
    assert result['failed'] == [first]
    assert db.session.get(Room, first) is not None
    assert db.session.get(Room, second) is None


def test_delete_room_missing(app_ctx):
    assert sweeper.delete_room('nope') is False


def test_deletion_notifies_room_watchers(app_ctx, alice):
    room_id = repository.create_room(alice, 'Alice')['room_id']
    updates = []
    subscription = repository.subscribe_room(room_id, updates.append)
    assert sweeper.delete_room(room_id) is True
    assert updates[-1] is None
    subscription.unsubscribe()


def test_room_count_follows_create_and_delete(app_ctx, alice, bob):
    assert get_room_count() == 0
    first = repository.create_room(alice, 'Alice')['room_id']
    repository.create_room(bob, 'Bob')
    assert get_room_count() == 2

    sweeper.delete_room(first)
    assert get_room_count() == 1


def test_scheduler_disabled_in_testing(app_ctx):
    assert sweeper.start_cleanup_scheduler(app_ctx) is None


class ServingConfig:
    SECRET_KEY = 'test-secret'
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    CLEANUP_SCHEDULER_ENABLED = True
    CLEANUP_INTERVAL_SEC = 300


def test_app_factory_starts_scheduler(monkeypatch):
    started = []
    monkeypatch.setattr(socketio, 'start_background_task', lambda target: started.append(target))
    create_app(ServingConfig)
    assert len(started) == 1


def test_app_factory_respects_disabled_scheduler(monkeypatch):
    started = []
    monkeypatch.setattr(socketio, 'start_background_task', lambda target: started.append(target))

    class DisabledConfig(ServingConfig):
        CLEANUP_SCHEDULER_ENABLED = False

    create_app(DisabledConfig)
    assert started == []
