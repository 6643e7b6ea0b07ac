"""Core de bws-cli: dominio, configuración, errores y orquestación.

El Core no conoce httpx, gRPC ni la consola: solo contratos y modelos.
"""

__version__ = "0.1.0"
