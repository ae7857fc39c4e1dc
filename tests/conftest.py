"""
Pytest configuration and fixtures for nested MuSig2 tests.
"""

import pytest

from nested_musig2.tree import AggregatorNode, create_aggregator, create_leaf


def build_single_nesting_tree() -> AggregatorNode:
    """root[a, group-b[b1, b2]]"""
    group_b = create_aggregator("group-b", [create_leaf("b1"), create_leaf("b2")])
    return create_aggregator("root", [create_leaf("a"), group_b])


def build_double_nesting_tree() -> AggregatorNode:
    """root[a, group-b[b1, group-c[c1, c2]]]"""
    group_c = create_aggregator("group-c", [create_leaf("c1"), create_leaf("c2")])
    group_b = create_aggregator("group-b", [create_leaf("b1"), group_c])
    return create_aggregator("root", [create_leaf("a"), group_b])


def build_mixed_depth_tree() -> AggregatorNode:
    """root[a, group-b[b1, b2], group-c[group-d[d1, d2], c1]]"""
    group_b = create_aggregator("group-b", [create_leaf("b1"), create_leaf("b2")])
    group_d = create_aggregator("group-d", [create_leaf("d1"), create_leaf("d2")])
    group_c = create_aggregator("group-c", [group_d, create_leaf("c1")])
    return create_aggregator("root", [create_leaf("a"), group_b, group_c])


def build_flat_tree() -> AggregatorNode:
    """root[s1, s2, s3]"""
    return create_aggregator(
        "root", [create_leaf("s1"), create_leaf("s2"), create_leaf("s3")],
    )


def build_single_child_chain() -> AggregatorNode:
    """root[group-x[solo]]: arity-1 aggregators at every level"""
    return create_aggregator(
        "root", [create_aggregator("group-x", [create_leaf("solo")])],
    )


TREE_BUILDERS = {
    "flat": build_flat_tree,
    "single": build_single_nesting_tree,
    "double": build_double_nesting_tree,
    "mixed": build_mixed_depth_tree,
    "chain": build_single_child_chain,
}


@pytest.fixture(params=sorted(TREE_BUILDERS))
def any_tree(request):
    """Each documented tree shape, freshly built."""
    return TREE_BUILDERS[request.param]()


@pytest.fixture
def mixed_tree():
    return build_mixed_depth_tree()


@pytest.fixture
def message():
    return b"nested musig2 test message"
