"""Protobuf contracts of the BWS gRPC API (loaded by `adapters.grpc_contracts`)."""
