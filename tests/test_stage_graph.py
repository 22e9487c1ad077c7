"""Tests for the stage chain arena."""

import pytest

from snapline.exceptions.domain import InvalidStageError
from snapline.services.pipeline.stage_graph import StageGraph


class TestStageGraphQueries:
    def test_empty(self):
        graph = StageGraph()

        assert graph.head() is None
        assert graph.tail() is None
        assert graph.ordered() == []
        graph.check()

    def test_order_follows_links_not_ids(self):
        graph = StageGraph({1: None, 2: 3, 3: 1})

        assert graph.head() == 2
        assert graph.tail() == 1
        assert graph.ordered() == [2, 3, 1]
        assert graph.predecessor(1) == 3
        assert graph.predecessor(2) is None
        assert graph.successor(3) == 1


class TestStageGraphCheck:
    @pytest.mark.parametrize(
        "links",
        [
            {1: 9},  # dangling
            {1: 1},  # self loop
            {1: 3, 2: 3, 3: None},  # branch
            {1: None, 2: None},  # two heads
            {1: 2, 2: 1},  # cycle
            {1: 2, 2: 3, 3: 2},  # cycle behind a head
        ],
    )
    def test_rejects_malformed(self, links):
        with pytest.raises(InvalidStageError):
            StageGraph(links).check()

    def test_accepts_chain(self):
        StageGraph({1: 2, 2: 3, 3: None}).check()


class TestStageGraphMutations:
    def test_append_to_empty(self):
        graph = StageGraph()

        graph.append(1)

        assert graph.links == {1: None}

    def test_append_to_tail(self):
        graph = StageGraph({1: 2, 2: None})

        graph.append(3)

        assert graph.ordered() == [1, 2, 3]

    def test_insert_after_middle(self):
        graph = StageGraph({1: 2, 2: None})

        graph.insert_after(1, 3)

        assert graph.ordered() == [1, 3, 2]
        graph.check()

    def test_insert_after_unknown_source(self):
        with pytest.raises(InvalidStageError):
            StageGraph({1: None}).insert_after(5, 2)

    def test_insert_existing_stage(self):
        with pytest.raises(InvalidStageError):
            StageGraph({1: 2, 2: None}).insert_after(1, 2)

    def test_remove_middle_bridges(self):
        graph = StageGraph({1: 2, 2: 3, 3: None})

        predecessor = graph.remove(2)

        assert predecessor == 1
        assert graph.links == {1: 3, 3: None}

    def test_remove_tail(self):
        graph = StageGraph({1: 2, 2: None})

        assert graph.remove(2) == 1
        assert graph.links == {1: None}

    def test_remove_head(self):
        graph = StageGraph({1: 2, 2: None})

        assert graph.remove(1) is None
        assert graph.ordered() == [2]
