import threading

import pytest

from gnmikit.ctree import Leaf, Tree, TreeError, detached_leaf

TEST_PATHS = [
    ["a", "b", "c"],
    ["a", "d"],
    ["b", "a", "d"],
    ["b", "c", "d"],
    ["c", "d", "e", "f", "g", "h", "i"],
    ["d"],
]

SMALL_PATHS = [["a", "b", "c"], ["a", "d"], ["d"]]


def build_tree(tree, paths=TEST_PATHS):
    for p in paths:
        tree.add(p, "/".join(p))
    return tree


def tree_of(entries):
    tree = Tree()
    for p, v in entries:
        tree.add(p, v)
    return tree


def test_add():
    tr = Tree()
    tr.add([], "foo")
    with pytest.raises(TreeError):
        tr.add(["a"], "foo")
    tr = Tree()
    tr.add(["a"], "foo")
    with pytest.raises(TreeError):
        tr.add([], "foo")
    with pytest.raises(TreeError):
        tr.add(["a", "b"], "foo")
    tr.add(["b", "c", "d", "e"], "foo")
    assert tr.get_leaf_value(["b", "c", "d", "e"]) == "foo"
    assert tr.get_leaf_value(["a"]) == "foo"


def test_add_to_leaf_root_fails():
    tr = tree_of([([], "not a branch")])
    with pytest.raises(TreeError):
        tr.add(["a"], "testVal")


def test_add_over_existing_leaf():
    tr = tree_of([(["a"], "a")])
    tr.add(["a"], "testVal")
    assert tr.get_leaf_value(["a"]) == "testVal"


@pytest.mark.parametrize(
    "path,value",
    [
        (["a", "b"], "value0"),
        (["a", "c"], "value1"),
        (["a", "d"], "value2"),
        (["b"], "value2"),
        (["c", "a"], "value3"),
        (["c", "b", "a"], "value4"),
        (["c", "d"], "value5"),
    ],
)
def test_get_leaf_value_single(path, value):
    tr = Tree()
    assert tr.get_leaf_value(path) is None
    tr.add(path, value)
    assert tr.get_leaf_value(path) == value


def test_get_leaf_value_sequence():
    tr = Tree()
    cases = [
        (["a", "b"], "value0"),
        (["a", "c"], "value1"),
        (["a", "d"], "value2"),
        (["b"], "value2"),
        (["c", "a"], "value3"),
        (["c", "b", "a"], "value4"),
        (["c", "d"], "value5"),
    ]
    for path, value in cases:
        assert tr.get_leaf_value(path) is None
        tr.add(path, value)
        assert tr.get_leaf_value(path) == value


def collect_query(tr, path):
    results = {}

    def visit(p, _leaf, v):
        results["/".join(p)] = v

    tr.query(path, visit)
    return results


def test_query_empty_tree():
    assert collect_query(Tree(), ["*"]) == {}


@pytest.mark.parametrize(
    "query,expected",
    [
        (["a", "d"], {"a/d": "a/d"}),
        (["a"], {"a/d": "a/d", "a/b/c": "a/b/c"}),
        (["a", "d", "*"], {"a/d": "a/d"}),
        (["a", "*"], {"a/d": "a/d", "a/b/c": "a/b/c"}),
        (
            ["*"],
            {
                "a/d": "a/d",
                "a/b/c": "a/b/c",
                "b/c/d": "b/c/d",
                "b/a/d": "b/a/d",
                "c/d/e/f/g/h/i": "c/d/e/f/g/h/i",
                "d": "d",
            },
        ),
        (["*", "*", "d"], {"b/c/d": "b/c/d", "b/a/d": "b/a/d"}),
        (["c", "d", "e"], {"c/d/e/f/g/h/i": "c/d/e/f/g/h/i"}),
        (["x"], {}),
    ],
)
def test_query(query, expected):
    tr = build_tree(Tree())
    assert collect_query(tr, query) == expected


def test_update_leaf():
    tr = build_tree(Tree())
    leaf = tr.get_leaf(TEST_PATHS[0])
    tr.add(TEST_PATHS[0], "new value")
    assert leaf.value() == "new value"


def test_leaf_update_changes_tree():
    tr = build_tree(Tree())
    leaf = tr.get_leaf(["a", "d"])
    leaf.update("changed")
    assert tr.get_leaf_value(["a", "d"]) == "changed"


def test_get_leaf_missing():
    tr = build_tree(Tree())
    assert tr.get_leaf(["no", "such"]) is None
    assert tr.get_leaf_value(["no", "such"]) is None


def test_walk():
    tr = build_tree(Tree())
    seen = []
    tr.walk(lambda path, leaf, value: seen.append((list(path), leaf, value)))
    assert len(seen) == len(TEST_PATHS)
    assert sorted(p for p, _, _ in seen) == sorted(TEST_PATHS)
    assert {"/".join(p): v for p, _, v in seen} == {
        "/".join(p): "/".join(p) for p in TEST_PATHS
    }
    assert {"/".join(p): leaf.value() for p, leaf, _ in seen} == {
        "/".join(p): "/".join(p) for p in TEST_PATHS
    }


def test_walk_leaf_handle_is_live():
    tr = build_tree(Tree())
    leaves = {}
    tr.walk(lambda p, leaf, _v: leaves.__setitem__("/".join(p), leaf))
    tr.add(["d"], "fresh")
    assert leaves["d"].value() == "fresh"


def test_walk_sorted():
    tr = build_tree(Tree())
    seen = []
    tr.walk_sorted(lambda path, leaf, value: seen.append((list(path), leaf, value)))
    assert [p for p, _, _ in seen] == TEST_PATHS
    assert [v for _, _, v in seen] == ["/".join(p) for p in TEST_PATHS]
    assert [leaf.value() for _, leaf, _ in seen] == ["/".join(p) for p in TEST_PATHS]


def test_empty_walk():
    calls = []
    tr = Tree()
    tr.walk(lambda *args: calls.append(args))
    tr.walk_sorted(lambda *args: calls.append(args))
    assert calls == []


class StopVisit(Exception):
    pass


@pytest.mark.parametrize("method", ["query", "walk", "walk_sorted"])
def test_visit_error_stops_early(method):
    tr = build_tree(Tree())
    count = 0

    def visit(_p, _leaf, _v):
        nonlocal count
        count += 1
        if count == 1:
            raise StopVisit("error")
        raise AssertionError(f"got count {count}, want 1")

    with pytest.raises(StopVisit):
        if method == "query":
            tr.query(["*"], visit)
        else:
            getattr(tr, method)(visit)
    assert count == 1


def expected_deletes():
    everything = {"a/d", "a/b/c", "b/a/d", "b/c/d", "c/d/e/f/g/h/i", "d"}
    return [
        (["x"], set()),
        (["x", "*"], set()),
        (["d"], {"d"}),
        (["a"], {"a/d", "a/b/c"}),
        (["a", "*"], {"a/d", "a/b/c"}),
        (["b", "c", "d"], {"b/c/d"}),
        (["b", "*", "d"], {"b/a/d", "b/c/d"}),
        (["b", "*", "x"], set()),
        (["b"], {"b/a/d", "b/c/d"}),
        (["c", "d", "e"], {"c/d/e/f/g/h/i"}),
        ([], everything),
        (["*"], everything),
    ]


def test_walk_deleted():
    tr = Tree()
    always = lambda _v: True  # noqa: E731
    deleted = []
    tr.walk_deleted(["a", "b"], always, deleted.append)
    assert deleted == []
    for subpath, leaves in expected_deletes():
        build_tree(tr)
        values = []
        tr.walk_deleted(subpath, always, values.append)
        assert set(values) == leaves, subpath
        assert len(values) == len(leaves)
    assert tr == Tree()


def test_walk_deleted_with_condition():
    tr = build_tree(Tree())
    leaves = []
    tr.walk_deleted([], lambda _v: False, leaves.append)
    assert leaves == []
    tr.walk_deleted([], lambda _v: True, leaves.append)
    assert len(leaves) == 6
    build_tree(tr)
    leaves = []
    tr.walk_deleted([], lambda v: v == "d", leaves.append)
    assert leaves == ["d"]
    assert tr.get_leaf_value(["d"]) is None
    assert tr.get_leaf_value(["a", "d"]) == "a/d"


def test_delete():
    tr = Tree()
    assert tr.delete(["a", "b"]) == []
    for subpath, leaves in expected_deletes():
        build_tree(tr)
        got = ["/".join(leaf) for leaf in tr.delete(subpath)]
        assert set(got) == leaves, subpath
        assert len(got) == len(leaves)
    assert tr == Tree()


def test_delete_prunes_empty_ancestors():
    tr = build_tree(Tree())
    assert tr.delete(["c", "d", "e", "f", "g", "h", "i"]) == [
        ["c", "d", "e", "f", "g", "h", "i"]
    ]
    assert tr.get(["c"]) is None


def test_delete_conditional():
    tr = build_tree(Tree())
    assert tr.delete_conditional([], lambda _v: False) == []
    assert len(tr.delete_conditional([], lambda _v: True)) == 6
    build_tree(tr)
    assert tr.delete_conditional([], lambda v: v == "d") == [["d"]]
    assert tr.get_leaf_value(["d"]) is None


@pytest.mark.parametrize(
    "first,second,equal",
    [
        ([], [], True),
        ([(["a"], "a")], [], False),
        ([(["a"], "a")], [(["a"], "a")], True),
        ([(["a"], "a"), (["b"], "b")], [(["a"], "a")], False),
        ([(["a"], "a")], [(["a"], "a"), (["b"], "b")], False),
        ([(["a"], "a"), (["b"], "b")], [(["a"], "a"), (["b"], "b")], True),
        ([(["a"], "a"), (["b", "b/c"], "b/c")], [(["a"], "a"), (["b"], "b")], False),
        (
            [(["a"], "a"), (["b", "b/c"], "b/c")],
            [(["a"], "a"), (["b", "b/c"], "b/c")],
            True,
        ),
    ],
)
def test_equal(first, second, equal):
    assert (tree_of(first) == tree_of(second)) is equal


def generate_paths(count):
    return [[chr(c % d + 65) for d in range(3, 16)] for c in range(count)]


def build_tree_range(tree, paths, index, modulus):
    for p in paths[index::modulus]:
        tree.add(p, "/".join(p))


def run_threads(target, args_list):
    threads = [threading.Thread(target=target, args=args) for args in args_list]
    for t in threads:
        t.start()
    for t in threads:
        t.join()


def test_parallel_add():
    paths = generate_paths(2000)
    trees = []
    for n in (1, 2, 4, 8):
        tree = Tree()
        trees.append(tree)
        run_threads(build_tree_range, [(tree, paths, i, n) for i in range(n)])
    assert [t == trees[0] for t in trees[1:]] == [True, True, True]
    assert [t.get_leaf_value(paths[-1]) for t in trees] == ["/".join(paths[-1])] * 4


def test_parallel_delete():
    paths = generate_paths(2000)
    for n in (2, 4, 8):
        tree = Tree()
        run_threads(build_tree_range, [(tree, paths, i, n) for i in range(n)])

        def delete_range(index, modulus, tree=tree):
            for p in paths[index::modulus]:
                tree.delete(p)

        run_threads(delete_range, [(i, n) for i in range(n)])
        assert tree == Tree()


def test_parallel_query_get():
    paths = generate_paths(1000)
    tree = Tree()
    build_tree_range(tree, paths, 0, 1)
    failures = []

    def check_range(index, modulus):
        for p in paths[index::modulus]:
            want = "/".join(p)
            if tree.get_leaf_value(p) != want:
                failures.append(("get", p))
            results = []
            tree.query(p, lambda _p, _l, v: results.append(v))
            if results != [want]:
                failures.append(("query", p))
            partial = []
            tree.query(p[:3], lambda _p, _l, v: partial.append(v))
            if not partial or not all(v.startswith(p[0]) for v in partial):
                failures.append(("partial", p))

    args = [(i, n) for n in (2, 4, 8) for i in range(n)]
    run_threads(check_range, args)
    assert failures == []
    assert tree.get_leaf_value(paths[0]) == "/".join(paths[0])
    assert tree.get_leaf_value(paths[-1]) == "/".join(paths[-1])


def test_is_branch():
    tr = build_tree(Tree())
    assert tr.is_branch() is True
    assert tr.get(TEST_PATHS[0]).is_branch() is False
    assert Tree().is_branch() is False


def test_get():
    tr = build_tree(Tree(), SMALL_PATHS)
    assert tr.get(["a"]) == tree_of([(["b", "c"], "a/b/c"), (["d"], "a/d")])
    assert tr.get(["a", "d"]) == tree_of([([], "a/d")])
    assert tr.get([]) == tree_of(
        [(["a", "b", "c"], "a/b/c"), (["a", "d"], "a/d"), (["d"], "d")]
    )
    assert tr.get([]) is tr
    assert tr.get(["non existent path"]) is None


def test_children():
    tr = build_tree(Tree(), SMALL_PATHS)
    children = tr.children()
    assert set(children) == {"a", "d"}
    assert children["a"] == tree_of([(["b", "c"], "a/b/c"), (["d"], "a/d")])
    assert children["d"] == tree_of([([], "d")])
    assert tr.get(SMALL_PATHS[0]).children() is None


def test_children_is_copy():
    tr = build_tree(Tree(), SMALL_PATHS)
    children = tr.children()
    children.pop("a")
    assert tr.get_leaf_value(["a", "d"]) == "a/d"


def test_tree_value():
    branch = tree_of([(["x"], "y")])
    assert branch.value() is None
    assert tree_of([([], "val1")]).value() == "val1"
    assert Tree().value() is None


def test_leaf_value():
    leaf = detached_leaf("val1")
    assert leaf.value() == "val1"
    leaf.update("val2")
    assert leaf.value() == "val2"
    assert isinstance(leaf, Leaf) and leaf.value() == "val2"


def test_string():
    tr = build_tree(Tree(), SMALL_PATHS)
    assert str(tr) == '{ "a": { "b": { "c": "a/b/c" }, "d": "a/d" }, "d": "d" }'
    assert str(tr.get(["a"])) == '{ "b": { "c": "a/b/c" }, "d": "a/d" }'
    assert str(tr.get(["d"])) == '"d"'
    assert f"{tr.get(['d'])}" == '"d"'