"""Character relationship graph helpers.

Relationships are stored directed (from -> to), but for "who is connected to
whom" questions the graph is treated as undirected.
"""

from collections import Counter, defaultdict

MAX_PATH_DEPTH = 6


def build_network(characters, relationships):
    """Nodes and edges for drawing the relationship graph."""
    degree = Counter()
    for rel in relationships:
        degree[rel.from_character_id] += 1
        degree[rel.to_character_id] += 1

    nodes = [{
        'id': c.id,
        'name': c.name,
        'type': c.type,
        'connections': degree[c.id],
    } for c in characters]
    edges = [{
        'id': rel.id,
        'source': rel.from_character_id,
        'target': rel.to_character_id,
        'type': rel.type,
        'description': rel.description,
    } for rel in relationships]
    return {'nodes': nodes, 'edges': edges}


def network_statistics(characters, relationships, top=5):
    names = {c.id: c.name for c in characters}
    degree = Counter()
    for rel in relationships:
        degree[rel.from_character_id] += 1
        degree[rel.to_character_id] += 1

    n = len(characters)
    possible = n * (n - 1) / 2
    density = round(len(relationships) / possible, 3) if possible else 0

    return {
        'total_relationships': len(relationships),
        'total_characters': n,
        'type_breakdown': dict(Counter(rel.type for rel in relationships)),
        'most_connected': [
            {'id': cid, 'name': names.get(cid), 'connections': count}
            for cid, count in degree.most_common(top)
        ],
        'network_density': density,
    }


def find_paths(relationships, source, target, max_depth=3):
    """Every simple path from source to target using at most max_depth links.

    Returns a list of character id lists, each starting with source and ending
    with target. A character is trivially connected to itself.
    """
    if source == target:
        return [[source]]
    max_depth = max(1, min(int(max_depth), MAX_PATH_DEPTH))

    neighbours = defaultdict(set)
    for rel in relationships:
        neighbours[rel.from_character_id].add(rel.to_character_id)
        neighbours[rel.to_character_id].add(rel.from_character_id)

    paths = []

    def walk(current, path, depth):
        if depth == 0:
            return
        for nxt in sorted(neighbours[current]):
            if nxt == target:
                paths.append(path + [nxt])
            elif nxt not in path:
                walk(nxt, path + [nxt], depth - 1)

    walk(source, [source], max_depth)
    return paths
