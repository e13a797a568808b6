"""Application layer: DTOs and interfaces.

Depends only on domain and protocol definitions.
Infrastructure implements the interfaces (REST clients, native adapter).
"""
