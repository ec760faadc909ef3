import pytest

from cartpy import (
    InvalidMetricError,
    InvalidTargetTypeError,
    TreeNode,
    classify,
    divide_set,
    entropy,
    gini,
    grow,
    prune,
    render,
    variance,
)


def _tiny_dataset():
    """Numeric feature, string target; splits cleanly at 3."""
    return [[1, "A"], [2, "A"], [3, "B"], [4, "B"]]


def _mixed_dataset():
    """Numeric and categorical features with three classes."""
    return [
        [1, "red", "X"],
        [2, "red", "X"],
        [3, "blue", "Y"],
        [4, "blue", "Y"],
        [5, "blue", "Z"],
        [6, "red", "Z"],
        [7, "green", "Z"],
        [3, "green", "X"],
    ]


def _leaves(node):
    if node.is_leaf:
        return [node]
    return _leaves(node.true_branch) + _leaves(node.false_branch)


def _internals(node):
    if node.is_leaf:
        return []
    return [node] + _internals(node.true_branch) + _internals(node.false_branch)


def _gain(rows, col, value, metric):
    set1, set2 = divide_set(rows, col, value)
    p = len(set1) / len(rows)
    return metric(rows) - p * metric(set1) - (1 - p) * metric(set2), set1, set2


def _rows_at(rows, root, target):
    """Rows that reach ``target`` when routed from ``root``."""
    if root is target:
        return rows
    if root.is_leaf:
        return None
    set1, set2 = divide_set(rows, root.col, root.value)
    found = _rows_at(set1, root.true_branch, target)
    return found if found is not None else _rows_at(set2, root.false_branch, target)


# -----------------------------------------------------------------------------
# Splitter
# -----------------------------------------------------------------------------
def test_divide_set_numeric_threshold_is_inclusive():
    matched, unmatched = divide_set(_tiny_dataset(), 0, 3)
    assert matched == [[3, "B"], [4, "B"]]
    assert unmatched == [[1, "A"], [2, "A"]]


def test_divide_set_categorical_equality():
    rows = _mixed_dataset()
    matched, unmatched = divide_set(rows, 1, "blue")
    assert [r[0] for r in matched] == [3, 4, 5]
    assert len(unmatched) == 5


def test_divide_set_missing_cells_fail_numeric_threshold():
    rows = [[None, "A"], [5, "B"], ["n/a", "C"]]
    matched, unmatched = divide_set(rows, 0, 1)
    assert matched == [[5, "B"]]
    assert unmatched == [[None, "A"], ["n/a", "C"]]


# -----------------------------------------------------------------------------
# Builder
# -----------------------------------------------------------------------------
def test_grow_worked_example_gini():
    tree = grow(_tiny_dataset(), gini)
    assert not tree.is_leaf
    assert (tree.col, tree.value) == (0, 3)
    assert tree.true_branch.results == {"B": 2}
    assert tree.false_branch.results == {"A": 2}
    assert tree.summary == {"impurity": "0.500", "samples": 4}
    assert tree.true_branch.summary == {"impurity": "0.00", "samples": 2}


def test_grow_candidate_gains_of_worked_example():
    rows = _tiny_dataset()
    assert _gain(rows, 0, 2, gini)[0] == pytest.approx(1 / 6)
    assert _gain(rows, 0, 3, gini)[0] == pytest.approx(0.5)
    assert _gain(rows, 0, 4, gini)[0] == pytest.approx(1 / 6)


def test_grow_accepts_metric_name():
    tree = grow(_tiny_dataset(), "gini")
    assert (tree.col, tree.value) == (0, 3)


def test_grow_empty_dataset_gives_empty_leaf():
    tree = grow([])
    assert tree.is_leaf
    assert tree.results == {}
    assert tree.summary["samples"] == 0
    assert classify([1], tree) == {}


def test_grow_pure_dataset_is_single_leaf():
    tree = grow([[1, "A"], [2, "A"]])
    assert tree.is_leaf
    assert tree.results == {"A": 2}


def test_grow_identical_features_cannot_split():
    tree = grow([[1, "A"], [1, "B"]])
    assert tree.is_leaf
    assert tree.results == {"A": 1, "B": 1}


def test_grow_categorical_split():
    rows = [["red", "A"], ["blue", "B"], ["red", "A"]]
    tree = grow(rows)
    # "blue" and "red" give the same gain; "blue" sorts first
    assert (tree.col, tree.value) == (0, "blue")
    assert tree.true_branch.results == {"B": 1}
    assert tree.false_branch.results == {"A": 2}


def test_grow_tie_break_prefers_lowest_column():
    rows = [[1, 1, "A"], [2, 2, "B"]]
    tree = grow(rows)
    assert (tree.col, tree.value) == (0, 2)


def test_grow_tie_break_prefers_lowest_value():
    rows = [[1, "A"], [2, "B"], [3, "C"]]
    tree = grow(rows)
    assert (tree.col, tree.value) == (0, 2)
    assert (tree.true_branch.col, tree.true_branch.value) == (0, 3)


@pytest.mark.parametrize("metric", [entropy, gini])
def test_grow_leaf_counts_sum_to_row_count(metric):
    rows = _mixed_dataset()
    tree = grow(rows, metric)
    assert sum(sum(leaf.results.values()) for leaf in _leaves(tree)) == len(rows)
    assert tree.n_leaves == len(_leaves(tree))


@pytest.mark.parametrize("metric", [entropy, gini])
def test_grow_splits_are_optimal(metric):
    rows = _mixed_dataset()
    tree = grow(rows, metric)
    for node in _internals(tree):
        node_rows = _rows_at(rows, tree, node)
        chosen, _, _ = _gain(node_rows, node.col, node.value, metric)
        assert chosen > 0
        earlier = True
        for col in range(len(node_rows[0]) - 1):
            for value in sorted({r[col] for r in node_rows}):
                if (col, value) == (node.col, node.value):
                    earlier = False
                    continue
                gain, set1, set2 = _gain(node_rows, col, value, metric)
                if not (set1 and set2):
                    continue
                assert gain <= chosen
                # ties go to the candidate found first
                if earlier:
                    assert gain < chosen


def test_grow_variance_regression_tree():
    rows = [[1, 10.0], [2, 10.0], [3, 20.0], [4, 20.0]]
    tree = grow(rows, variance)
    assert (tree.col, tree.value) == (0, 3)
    assert tree.true_branch.results == {20.0: 2}
    assert tree.false_branch.results == {10.0: 2}


def test_grow_variance_with_string_target_fails():
    with pytest.raises(InvalidTargetTypeError):
        grow(_tiny_dataset(), variance)


def test_grow_non_finite_metric_fails():
    with pytest.raises(InvalidMetricError):
        grow(_tiny_dataset(), lambda rows: float("nan"))


def test_grow_depth_and_leaf_helpers():
    tree = grow([[1, "A"], [2, "B"], [3, "C"]])
    assert tree.depth == 2
    assert tree.n_leaves == 3


def test_grow_mixed_column_tries_numbers_before_strings():
    # 1, 5 and "a" each give the same gain; 1 is tried first
    rows = [["a", "B"], [5, "B"], [1, "A"], [1, "A"]]
    tree = grow(rows)
    assert (tree.col, tree.value) == (0, 1)


def test_grow_never_splits_on_missing_value():
    # splitting on None would isolate the two "A" rows and win
    rows = [[None, "A"], [None, "A"], ["x", "B"], ["y", "B"], ["y", "A"]]
    tree = grow(rows)
    assert (tree.col, tree.value) == (0, "x")
    for node in _internals(tree):
        assert node.value is not None


def _chain(n):
    """Well-formed tree of ``n`` internal nodes, each with a leaf on the false side."""
    root = node = TreeNode(col=0, value=0, false_branch=TreeNode(results={"A": 1}))
    for i in range(1, n):
        node.true_branch = TreeNode(col=0, value=i, false_branch=TreeNode(results={"A": 1}))
        node = node.true_branch
    node.true_branch = TreeNode(results={"B": 1})
    return root


# -----------------------------------------------------------------------------
# Pruner
# -----------------------------------------------------------------------------
def test_prune_collapses_low_gain_split():
    tree = grow(_tiny_dataset(), gini)
    prune(tree, 0.6, gini)
    assert tree.is_leaf
    assert tree.true_branch is None and tree.false_branch is None
    assert tree.results == {"A": 2, "B": 2}


def test_prune_keeps_split_at_threshold():
    tree = grow(_tiny_dataset(), gini)
    prune(tree, 0.5, gini)
    assert not tree.is_leaf
    assert tree.true_branch.results == {"B": 2}


def test_prune_notify_callable_receives_gain():
    deltas = []
    tree = grow(_tiny_dataset(), gini)
    prune(tree, 1.0, gini, notify=deltas.append)
    assert deltas == [pytest.approx(0.5)]


def test_prune_notify_failure_does_not_change_result():
    def boom(delta):
        raise RuntimeError("hook failed")

    tree = grow(_tiny_dataset(), gini)
    prune(tree, 1.0, gini, notify=boom)
    assert tree.results == {"A": 2, "B": 2}


def test_prune_everything_keeps_total_count():
    rows = _mixed_dataset()
    tree = grow(rows)
    prune(tree, 10.0)
    assert tree.is_leaf
    assert sum(tree.results.values()) == len(rows)


def test_prune_only_merges_leaf_siblings():
    rows = _mixed_dataset()
    tree = grow(rows)
    counts = {id(n): sum(sum(leaf.results.values()) for leaf in _leaves(n)) for n in _internals(tree)}
    internal_ids = {id(n) for n in _internals(tree)}
    prune(tree, 0.0)
    # every grown split has a positive gain, so nothing is merged
    assert {id(n) for n in _internals(tree)} == internal_ids
    prune(tree, 0.95)
    for node in _leaves(tree):
        if id(node) in counts:
            assert sum(node.results.values()) == counts[id(node)]


def test_prune_leaf_tree_is_noop():
    tree = grow([[1, "A"]])
    prune(tree, 1.0)
    assert tree.results == {"A": 1}


def test_prune_variance_tree():
    rows = [[1, 10.0], [2, 10.0], [3, 20.0], [4, 20.0]]
    tree = grow(rows, variance)
    prune(tree, 100.0, variance)
    assert tree.results == {20.0: 2, 10.0: 2}


# -----------------------------------------------------------------------------
# Classifier
# -----------------------------------------------------------------------------
def test_classify_exact_routing():
    tree = grow(_tiny_dataset(), gini)
    assert classify([3, None], tree) == {"B": 2}
    assert classify([2], tree) == {"A": 2}


def test_classify_exact_routing_with_missing_value_takes_false_branch():
    tree = grow(_tiny_dataset(), gini)
    assert classify([None], tree) == {"A": 2}


def test_classify_missing_data_blends_branches():
    tree = grow(_tiny_dataset(), gini)
    result = classify([None, None], tree, data_missing=True)
    assert result == {"B": pytest.approx(1.0), "A": pytest.approx(1.0)}


def test_classify_missing_data_is_convex_combination():
    rows = [["red", "A"], ["blue", "B"], ["red", "A"]]
    tree = grow(rows)
    result = classify([None], tree, data_missing=True)
    assert result == {"B": pytest.approx(1 / 3), "A": pytest.approx(4 / 3)}
    assert sum(result.values()) == pytest.approx(
        (1 / 3) * 1 + (2 / 3) * 2
    )


def test_classify_missing_data_with_known_value_matches_exact():
    rows = _mixed_dataset()
    tree = grow(rows)
    for row in rows:
        assert classify(row, tree, data_missing=True) == classify(row, tree)


def test_classify_leaf_returns_results_without_reading_observation():
    leaf = TreeNode(results={"A": 3})
    assert classify([], leaf) == {"A": 3}
    assert classify([], leaf, data_missing=True) == {"A": 3}


def test_classify_returns_a_copy():
    tree = grow(_tiny_dataset(), gini)
    for data_missing in (False, True):
        result = classify([3], tree, data_missing=data_missing)
        result["B"] = 99
        result["Z"] = 1
    assert tree.true_branch.results == {"B": 2}


def test_classify_missing_data_below_the_root():
    rows = [[1, 1, "A"], [1, 2, "B"], [2, 1, "C"], [2, 1, "C"]]
    tree = grow(rows)
    assert (tree.col, tree.value) == (0, 2)
    assert (tree.false_branch.col, tree.false_branch.value) == (1, 2)
    # known value at the root, missing value one level down
    result = classify([1, None], tree, data_missing=True)
    assert result == {"B": pytest.approx(0.5), "A": pytest.approx(0.5)}


def test_classify_missing_data_blends_nested_blends():
    tree = grow([[1, "A"], [2, "B"], [3, "C"]])
    result = classify([None], tree, data_missing=True)
    # the true branch blends C and B, then that blend is weighted against A
    assert result == {
        "C": pytest.approx(0.25),
        "B": pytest.approx(0.25),
        "A": pytest.approx(0.5),
    }


def test_classify_deep_tree():
    tree = _chain(1500)
    assert classify([1499], tree) == {"B": 1}
    assert classify([10], tree) == {"A": 1}
    result = classify([None], tree, data_missing=True)
    assert set(result) == {"A", "B"}
    # every level blends two subtrees of total weight 1
    assert sum(result.values()) == pytest.approx(1.0)


def test_classify_malformed_tree_raises():
    broken = TreeNode(col=0, value=1, true_branch=TreeNode(results={"A": 1}))
    with pytest.raises(ValueError):
        classify([0], broken)


# -----------------------------------------------------------------------------
# Renderer
# -----------------------------------------------------------------------------
def test_render_worked_example():
    tree = grow(_tiny_dataset(), gini)
    assert render(tree) == "Column 0 >= 3\nyes -> (B: 2)\nno -> (A: 2)"


def test_render_column_names_and_categorical():
    rows = [["red", "A"], ["blue", "B"], ["red", "A"]]
    tree = grow(rows)
    assert render(tree, {0: "colour"}) == "colour == blue?\nyes -> (B: 1)\nno -> (A: 2)"


def test_render_indents_two_tabs_per_level():
    tree = grow([[1, "A"], [2, "B"], [3, "C"]])
    expected = (
        "Column 0 >= 2\n"
        "yes -> Column 0 >= 3\n"
        "\t\tyes -> (C: 1)\n"
        "\t\tno -> (B: 1)\n"
        "no -> (A: 1)"
    )
    assert render(tree) == expected


def test_render_leaf_sorted_by_label():
    leaf = TreeNode(results={"b": 1, "a": 2, "c": 0.5})
    assert render(leaf) == "(a: 2), (b: 1), (c: 0.5)"


def test_render_leaf_numbers_sort_before_strings():
    leaf = TreeNode(results={"b": 1, 10: 3, 2: 1})
    assert render(leaf) == "(2: 1), (10: 3), (b: 1)"


def test_render_deep_tree():
    n = 1500
    text = render(_chain(n))
    lines = text.split("\n")
    # one line per internal node plus one per leaf
    assert len(lines) == 2 * n + 1
    assert lines[0] == "Column 0 >= 0"
    assert lines[1] == "yes -> Column 0 >= 1"
    assert lines[-1] == "no -> (A: 1)"
