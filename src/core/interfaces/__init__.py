"""Interfaces del Core.

Por qué:
- `BwsTransport` (Protocol) es el contrato de las estrategias gRPC y REST.
- El dispatcher depende de esta abstracción, nunca de httpx o grpc.
"""
