"""Modelos y entidades del dominio.

Por qué:
- Aquí viven las estructuras de datos puras y estrictas (Pydantic v2): los
  contratos de request/response de BWS, compartidos por ambos transportes.
- El dominio no conoce HTTP, gRPC, ni la CLI: solo conceptos del problema.
"""
