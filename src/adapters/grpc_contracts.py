"""gRPC message and service modules for BWS.

The `.proto` files ship inside the package and are compiled at import time
by grpcio-tools, so no generated `_pb2` code is checked in. Message classes
and stubs are re-exported under stable names.
"""

from __future__ import annotations

import grpc
from grpc_health.v1 import health_pb2, health_pb2_grpc

bws_pb2, bws_pb2_grpc = grpc.protos_and_services("adapters/protos/bwsmessages.proto")
face_pb2, face_pb2_grpc = grpc.protos_and_services("adapters/protos/facerecognition.proto")

BioIDWebServiceStub = bws_pb2_grpc.BioIDWebServiceStub
FaceRecognitionStub = face_pb2_grpc.FaceRecognitionStub
HealthStub = health_pb2_grpc.HealthStub

__all__ = [
    "BioIDWebServiceStub",
    "FaceRecognitionStub",
    "HealthStub",
    "bws_pb2",
    "bws_pb2_grpc",
    "face_pb2",
    "face_pb2_grpc",
    "health_pb2",
    "health_pb2_grpc",
]
