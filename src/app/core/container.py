"""의존성 주입 컨테이너"""
import threading
from typing import Any, Callable, Dict, Type, TypeVar


T = TypeVar('T')

class DIContainer:
    """프로세스 수명 동안 유지되는 클라이언트/서비스 보관소

    지연 생성(lazy) 싱글톤은 최초 조회 시 한 번만 만들어지며, 동시에 들어온
    조회는 같은 잠금에서 대기한 뒤 캐시된 인스턴스를 돌려받는다.
    """

    def __init__(self):
        self._singletons: Dict[Type, Any] = {}
        self._lazy: Dict[Type, Callable[[], Any]] = {}
        self._lock = threading.Lock()

    def register_singleton(self, interface: Type[T], implementation: T) -> None:
        """싱글톤 인스턴스 등록"""
        self._singletons[interface] = implementation

    def register_lazy(self, interface: Type[T], factory_func: Callable[[], T]) -> None:
        """최초 조회 시 한 번만 생성되는 싱글톤 등록"""
        self._lazy[interface] = factory_func

    def is_registered(self, interface: Type) -> bool:
        return interface in self._singletons or interface in self._lazy

    def get(self, interface: Type[T]) -> T:
        """서비스 인스턴스 조회"""
        if interface in self._singletons:
            return self._singletons[interface]

        if interface in self._lazy:
            with self._lock:
                # 잠금 대기 중에 다른 호출이 이미 생성했을 수 있음
                if interface not in self._singletons:
                    self._singletons[interface] = self._lazy[interface]()
            return self._singletons[interface]

        interface_name = getattr(interface, "__name__", repr(interface))
        raise ValueError(f"Service {interface_name} not registered")

    def clear(self) -> None:
        """등록 정보 초기화 (테스트용)"""
        with self._lock:
            self._singletons.clear()
            self._lazy.clear()

# 전역 컨테이너 인스턴스
container = DIContainer()
