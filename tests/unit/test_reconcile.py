"""Tests for reconciling declared repositories against state."""

from foundagent.core.config import RepoConfig
from foundagent.workspace.reconcile import reconcile
from foundagent.workspace.state import Repository, State


def _declared(*names):
    return [RepoConfig(url=f"git@github.com:org/{n}.git", name=n) for n in names]


def _state(*names):
    state = State()
    for name in names:
        state.repositories[name] = Repository(name=name, url=f"git@github.com:org/{name}.git")
    return state


class TestReconcile:
    """Splitting into to-clone, up-to-date and stale."""

    def test_empty_state_clones_everything(self):
        result = reconcile(_declared("a", "b"), _state())

        assert [r.name for r in result.to_clone] == ["a", "b"]
        assert result.up_to_date == []
        assert result.stale == []
        assert not result.in_sync

    def test_partially_cloned(self):
        result = reconcile(_declared("a", "b"), _state("a"))

        assert [r.name for r in result.to_clone] == ["b"]
        assert [r.name for r in result.up_to_date] == ["a"]
        assert result.stale == []

    def test_stale_entries_are_sorted(self):
        result = reconcile(_declared("a"), _state("zeta", "a", "beta"))

        assert [r.name for r in result.stale] == ["beta", "zeta"]
        assert [r.name for r in result.up_to_date] == ["a"]

    def test_in_sync(self):
        result = reconcile(_declared("a", "b"), _state("b", "a"))
        assert result.in_sync
        assert [r.name for r in result.up_to_date] == ["a", "b"]

    def test_unnamed_declarations_are_ignored(self):
        unnamed = RepoConfig(url="git@github.com:org/x.git")
        result = reconcile([unnamed, *_declared("a")], _state())

        assert [r.name for r in result.to_clone] == ["a"]

    def test_sets_are_disjoint(self):
        result = reconcile(_declared("a", "b", "c"), _state("b", "d"))

        to_clone = {r.name for r in result.to_clone}
        up_to_date = {r.name for r in result.up_to_date}
        stale = {r.name for r in result.stale}
        assert to_clone == {"a", "c"}
        assert up_to_date == {"b"}
        assert stale == {"d"}
        assert not (to_clone & up_to_date or to_clone & stale or up_to_date & stale)
