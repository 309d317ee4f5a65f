#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Service de logging du relais
Console + fichier journalier, appelable plusieurs fois sans dupliquer les handlers
"""
import logging
import os
from datetime import datetime
from typing import Optional

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'

_HANDLER_MARK = '_camrelay_handler'


def _mark(handler: logging.Handler) -> logging.Handler:
    setattr(handler, _HANDLER_MARK, True)
    return handler


def setup_logging(level: str = 'INFO', logs_dir: Optional[str] = None,
                  logger_name: str = 'camrelay') -> logging.Logger:
    """
    Configurer le logger racine du package

    Args:
        level: niveau minimal ('DEBUG', 'INFO', ...)
        logs_dir: dossier du fichier journalier, None pour la console seule
        logger_name: logger à configurer

    Returns:
        Le logger configuré
    """
    logger = logging.getLogger(logger_name)
    logger.setLevel(getattr(logging, str(level).upper(), logging.INFO))

    # Éviter les doublons (create_app peut être appelé plusieurs fois)
    for handler in list(logger.handlers):
        if getattr(handler, _HANDLER_MARK, False):
            logger.removeHandler(handler)
            handler.close()

    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)

    console_handler = _mark(logging.StreamHandler())
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    if logs_dir:
        os.makedirs(logs_dir, exist_ok=True)
        log_file = os.path.join(logs_dir, f"camrelay_{datetime.now().strftime('%Y%m%d')}.log")
        file_handler = _mark(logging.FileHandler(log_file, encoding='utf-8'))
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    logger.debug(f"🔧 Logging initialisé (niveau={level}, dossier={logs_dir})")
    return logger
