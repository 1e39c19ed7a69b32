"""
visuluxe_vault/services/log_config.py — Sink único do loguru para o serviço.
"""
import sys

from loguru import logger


def configure_logging(level: str = "INFO"):
    logger.remove()
    logger.add(
        sys.stderr,
        level=level.upper(),
        format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | {name}:{line} - {message}",
        backtrace=False,
        diagnose=False,  # diagnose expõe valores de variáveis locais
    )
