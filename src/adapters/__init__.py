"""Adaptadores de infraestructura.

Token JWT (PyJWT), cliente httpx, canal grpc.aio y las dos estrategias de
transporte que implementan `core.interfaces.transport.BwsTransport`.
"""
