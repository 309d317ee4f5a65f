# camrelay/services/monitoring_service.py

"""
Métriques système pour le tableau de bord
"""

import logging
import os
import time
from typing import Any, Dict

import psutil

logger = logging.getLogger(__name__)

_GB = 1024 ** 3


def _usage(used: float, total: float) -> Dict[str, int]:
    return {
        'used': round(used / _GB),
        'total': round(total / _GB),
        'usedPercent': round((used / total) * 100) if total > 0 else 0,
    }


class MonitoringService:
    """Collecte CPU / mémoire / disque via psutil"""

    def __init__(self, disk_path: str = None):
        # Disque où tourne l'application
        self.disk_path = disk_path or os.path.abspath(os.sep)
        # Premier appel non bloquant: psutil mesure depuis l'appel précédent
        psutil.cpu_percent(interval=None)

    def get_system_stats(self) -> Dict[str, Any]:
        memory = psutil.virtual_memory()

        try:
            disk = psutil.disk_usage(self.disk_path)
            disk_stats = _usage(disk.used, disk.total)
        except OSError as e:
            logger.error(f"❌ Lecture disque impossible ({self.disk_path}): {e}")
            disk_stats = {'used': 0, 'total': 0, 'usedPercent': 0}

        return {
            'cpu': round(psutil.cpu_percent(interval=None)),
            'memory': _usage(memory.total - memory.available, memory.total),
            'disk': disk_stats,
            'uptime': int(time.time() - psutil.boot_time()),
        }
