"""
visuluxe_vault/services/masking.py — Representação segura para exibição.
"""
MASK = "••••••••"


def mask_api_key(secret: str | None) -> str:
    """Oito bullets + últimos 4 caracteres. Segredos curtos viram só bullets."""
    if not secret or len(secret) < 4:
        return MASK
    return MASK + secret[-4:]
