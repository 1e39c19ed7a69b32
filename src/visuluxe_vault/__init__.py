"""
Visuluxe-Vault — cofre das chaves de API dos provedores de geração de imagem.
"""
__version__ = "1.0.0"
