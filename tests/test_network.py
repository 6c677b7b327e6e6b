from types import SimpleNamespace

from chronicle.network import build_network, find_paths, network_statistics


def character(cid, name=None, type='NPC'):
    return SimpleNamespace(id=cid, name=name or cid.upper(), type=type)


def rel(rid, source, target, type='ally'):
    return SimpleNamespace(id=rid, from_character_id=source, to_character_id=target,
                           type=type, description=None)


CHARACTERS = [character('a'), character('b'), character('c'), character('d'), character('e')]
RELATIONSHIPS = [
    rel('r1', 'a', 'b'),
    rel('r2', 'b', 'c', 'enemy'),
    rel('r3', 'c', 'd'),
    rel('r4', 'a', 'c', 'family'),
]


def test_build_network_counts_connections():
    network = build_network(CHARACTERS, RELATIONSHIPS)
    connections = {node['id']: node['connections'] for node in network['nodes']}
    assert connections == {'a': 2, 'b': 2, 'c': 3, 'd': 1, 'e': 0}
    assert network['edges'][1] == {'id': 'r2', 'source': 'b', 'target': 'c',
                                   'type': 'enemy', 'description': None}


def test_statistics():
    stats = network_statistics(CHARACTERS, RELATIONSHIPS)
    assert stats['total_relationships'] == 4
    assert stats['type_breakdown'] == {'ally': 2, 'enemy': 1, 'family': 1}
    assert stats['most_connected'][0] == {'id': 'c', 'name': 'C', 'connections': 3}
    assert stats['network_density'] == 0.4


def test_statistics_on_empty_campaign():
    stats = network_statistics([], [])
    assert stats['network_density'] == 0
    assert stats['most_connected'] == []


def test_find_paths_ignores_direction():
    # d -> a needs to walk r3 and r4 against their stored direction
    assert ['d', 'c', 'a'] in find_paths(RELATIONSHIPS, 'd', 'a')


def test_find_paths_returns_every_simple_path():
    paths = find_paths(RELATIONSHIPS, 'a', 'd')
    assert sorted(paths) == [['a', 'b', 'c', 'd'], ['a', 'c', 'd']]


def test_find_paths_respects_depth():
    assert find_paths(RELATIONSHIPS, 'a', 'd', max_depth=2) == [['a', 'c', 'd']]
    assert find_paths(RELATIONSHIPS, 'a', 'd', max_depth=1) == []


def test_unconnected_and_self():
    assert find_paths(RELATIONSHIPS, 'a', 'e') == []
    assert find_paths(RELATIONSHIPS, 'a', 'a') == [['a']]
