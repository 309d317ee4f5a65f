"""
Chargement paresseux partagé entre caméras

Un seul appelant lance le chargement, les autres attendent le même
``Future``. Un échec n'est pas mémorisé: l'appel suivant relance.
"""

import logging
import threading
from concurrent.futures import Future
from typing import Callable, Generic, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar('T')


class SharedLoader(Generic[T]):
    """Au plus un chargement en cours, les autres appelants l'attendent"""

    def __init__(self, loader: Callable[[], T], name: str = 'resource'):
        self._loader = loader
        self.name = name
        self._lock = threading.Lock()
        self._future: Optional[Future] = None

    @property
    def loaded(self) -> bool:
        with self._lock:
            future = self._future
        return future is not None and future.done() and future.exception() is None

    def get(self, timeout: Optional[float] = None) -> T:
        with self._lock:
            owner = self._future is None
            if owner:
                self._future = Future()
            future = self._future

        if owner:
            logger.info(f"🔧 Chargement de {self.name}")
            try:
                value = self._loader()
            except Exception as e:
                logger.error(f"❌ Échec du chargement de {self.name}: {e}")
                with self._lock:
                    self._future = None
                future.set_exception(e)
                raise
            future.set_result(value)
            logger.info(f"✅ {self.name} chargé")

        return future.result(timeout=timeout)

    def reset(self):
        with self._lock:
            self._future = None
