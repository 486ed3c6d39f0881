"""DI 컨테이너 테스트"""
import threading

import pytest

from core.container import DIContainer


class _Service:
    pass


def test_singleton_registration():
    container = DIContainer()
    instance = _Service()
    container.register_singleton(_Service, instance)

    assert container.get(_Service) is instance


def test_lazy_factory_runs_once():
    container = DIContainer()
    created = []

    def _factory():
        created.append(1)
        return _Service()

    container.register_lazy(_Service, _factory)

    assert container.is_registered(_Service)
    assert created == []
    assert container.get(_Service) is container.get(_Service)
    assert created == [1]


def test_lazy_factory_concurrent_first_use():
    container = DIContainer()
    created = []
    barrier = threading.Barrier(8)

    def _factory():
        created.append(1)
        return _Service()

    container.register_lazy(_Service, _factory)
    results = []

    def _worker():
        barrier.wait()
        results.append(container.get(_Service))

    threads = [threading.Thread(target=_worker) for _ in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert len(created) == 1
    assert len({id(result) for result in results}) == 1


def test_unregistered_service_raises():
    with pytest.raises(ValueError) as excinfo:
        DIContainer().get(_Service)

    assert "_Service" in str(excinfo.value)


def test_clear():
    container = DIContainer()
    container.register_singleton(_Service, _Service())
    container.clear()

    assert not container.is_registered(_Service)
