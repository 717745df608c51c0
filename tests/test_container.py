"""
Tests for the service container.
"""

import asyncio

import pytest

from portal.core.container import (
    CircularDependencyError,
    ContainerError,
    DefinitionKind,
    Lifetime,
    RequestScope,
    ScopeError,
    ServiceContainer,
    ServiceNotFoundError,
)


class Repo:
    pass


class Service:
    def __init__(self, repo):
        self.repo = repo


class Closable:
    def __init__(self):
        self.closed = False

    def close(self):
        self.closed = True


@pytest.fixture
def container():
    return ServiceContainer()


def test_singleton_resolves_same_instance(container):
    container.register_singleton("repo", Repo)
    assert container.resolve("repo") is container.resolve("repo")


def test_transient_resolves_new_instances(container):
    container.register_singleton("repo", Repo)
    container.register("service", Service, ["repo"])
    first = container.resolve("service")
    second = container.resolve("service")
    assert first is not second
    assert first.repo is second.repo


def test_default_lifetime_is_transient(container):
    container.register("repo", Repo)
    assert container.resolve("repo") is not container.resolve("repo")


def test_dependencies_resolved_in_declared_order(container):
    container.register_instance("a", "A")
    container.register_instance("b", "B")
    container.register("pair", lambda x, y: (x, y), ["b", "a"])
    assert container.resolve("pair") == ("B", "A")


def test_factory_receives_resolver(container):
    container.register_instance("settings", {"name": "demo"})
    container.register_factory("greeting", lambda resolve: f"hello {resolve('settings')['name']}")
    assert container.resolve("greeting") == "hello demo"


def test_factory_rejects_declared_dependencies(container):
    with pytest.raises(ContainerError):
        container.register("x", lambda resolve: 1, ["y"], kind=DefinitionKind.FACTORY)


def test_unregistered_name_raises_not_found(container):
    with pytest.raises(ServiceNotFoundError) as exc:
        container.resolve("missing")
    assert "missing" in str(exc.value)
    assert isinstance(exc.value, LookupError)


def test_missing_dependency_raises_not_found(container):
    container.register("service", Service, ["repo"])
    with pytest.raises(ServiceNotFoundError):
        container.resolve("service")


def test_dependency_may_be_registered_after_dependent(container):
    container.register("service", Service, ["repo"])
    container.register_singleton("repo", Repo)
    assert isinstance(container.resolve("service").repo, Repo)


def test_reregistering_replaces_previous_definition(container):
    container.register_singleton("repo", Repo)
    original = container.resolve("repo")
    container.register_instance("repo", "double")
    assert container.resolve("repo") == "double"
    assert original is not container.resolve("repo")


def test_circular_dependency_detected(container):
    container.register("a", Service, ["b"])
    container.register("b", Service, ["a"])
    with pytest.raises(CircularDependencyError) as exc:
        container.resolve("a")
    assert exc.value.chain == ("a", "b", "a")


def test_circular_dependency_through_factory_detected(container):
    container.register_factory("a", lambda resolve: resolve("a"))
    with pytest.raises(CircularDependencyError):
        container.resolve("a")


def test_scoped_requires_scope(container):
    container.register_scoped("repo", Repo)
    with pytest.raises(ScopeError):
        container.resolve("repo")


def test_scoped_stable_within_scope_distinct_across(container):
    container.register_scoped("repo", Repo)
    one, two = RequestScope(), RequestScope()
    assert container.resolve("repo", one) is container.resolve("repo", one)
    assert container.resolve("repo", one) is not container.resolve("repo", two)


def test_singleton_cannot_capture_scoped_service(container):
    container.register_scoped("repo", Repo)
    container.register_singleton("service", Service, ["repo"])
    with pytest.raises(ScopeError):
        container.resolve("service", RequestScope())


def test_concurrent_requests_get_isolated_scoped_instances(container):
    container.register_scoped("repo", Repo)
    results = {}

    async def handle(key):
        with RequestScope() as scope:
            first = container.resolve("repo", scope)
            await asyncio.sleep(0)
            second = container.resolve("repo", scope)
            results[key] = (first, second)

    async def main():
        await asyncio.gather(handle("r1"), handle("r2"))

    asyncio.run(main())

    assert results["r1"][0] is results["r1"][1]
    assert results["r2"][0] is results["r2"][1]
    assert results["r1"][0] is not results["r2"][0]


def test_closing_scope_closes_instances(container):
    container.register_scoped("res", Closable)
    scope = RequestScope()
    res = container.resolve("res", scope)
    scope.close()
    assert res.closed
    assert "res" not in scope
    with pytest.raises(ScopeError):
        container.resolve("res", scope)


def test_registered_names(container):
    container.register_singleton("b", Repo)
    container.register("a", Repo, lifetime=Lifetime.SINGLETON)
    assert list(container.names()) == ["a", "b"]
