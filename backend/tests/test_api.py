from datetime import timedelta

from planit.services.rooms.expiry import sweep_expired_rooms


def test_index_and_health(client):
    assert client.get('/').status_code == 200
    res = client.get('/health')
    assert res.status_code == 200
    data = res.get_json()
    assert data['status'] == 'ok'
    assert 'timestamp' in data


def test_room_state_endpoint(client, store):
    room, host_id = store.create_room('Alice', ['A', 'B'], room_name='Sprint 12')
    store.submit_vote(room.id, host_id, 5)

    res = client.get(f'/api/rooms/{room.id}')
    assert res.status_code == 200
    data = res.get_json()
    assert data['room']['id'] == room.id
    assert data['room']['name'] == 'Sprint 12'
    assert data['allVoted'] is True
    # unrevealed values stay private over HTTP too
    assert data['room']['rounds'][0]['votes'][0]['value'] is None


def test_room_state_not_found(client):
    res = client.get('/api/rooms/does-not-exist')
    assert res.status_code == 404
    assert res.get_json() == {'error': 'Room not found'}


def test_list_rooms(client, store):
    assert client.get('/api/rooms').get_json() == []
    room, _ = store.create_room('Alice', ['A', 'B'])
    store.join_room(room.id, 'Bob')
    listing = client.get('/api/rooms').get_json()
    assert len(listing) == 1
    assert listing[0]['id'] == room.id
    assert listing[0]['participantCount'] == 2
    assert listing[0]['roundCount'] == 2
    assert listing[0]['currentRound'] == 'A'


def test_sweep_removes_only_old_rooms(flask_app, store, make_sio_client):
    host = make_sio_client()
    ack = host.emit('create-room', {'userName': 'Alice', 'roundNames': ['A']}, callback=True)
    old_id = ack['room']['id']
    fresh, _ = store.create_room('Bob', ['A'])
    store.get_room(old_id).created_at -= timedelta(hours=13)

    assert sweep_expired_rooms(flask_app) == [old_id]
    assert store.get_room(old_id) is None
    assert store.get_room(fresh.id) is fresh

    # actions on an expired room resolve as not found
    host.get_received()
    host.emit('reveal-votes', {'roomId': old_id, 'userId': ack['userId']})
    errors = [pkt['args'][0] for pkt in host.get_received() if pkt['name'] == 'error']
    assert errors == [{'message': 'Room not found'}]
