"""Shared fixtures for kubetopo integration tests.

Provides an in-memory cluster with realistic workload manifests and an
engine wired with the bundled default rules, so integration tests can
exercise full queries without touching a real Kubernetes cluster.
"""

from __future__ import annotations

import pytest

from kubetopo.store.memory import InMemoryResourceStore
from kubetopo.topology.engine import ResourceTopology
from kubetopo.topology.templates import load_rule_template

NS = "shop"

# ---------------------------------------------------------------------------
# Manifest factory helpers
# ---------------------------------------------------------------------------


def make_object(
    api_version: str,
    kind: str,
    name: str,
    namespace: str = NS,
    labels: dict[str, str] | None = None,
    owner: tuple[str, str, str] | None = None,
    **fields: object,
) -> dict:
    """Create a manifest. *owner* is ``(apiVersion, kind, name)``."""
    metadata: dict = {"name": name, "namespace": namespace, "labels": labels or {}}
    if owner:
        metadata["ownerReferences"] = [
            {"apiVersion": owner[0], "kind": owner[1], "name": owner[2], "uid": f"uid-{owner[2]}"}
        ]
    return {"apiVersion": api_version, "kind": kind, "metadata": metadata, **fields}


def make_pod(name: str, owner: tuple[str, str, str] | None, labels: dict[str, str], volumes: list | None = None) -> dict:
    return make_object("v1", "Pod", name, labels=labels, owner=owner, spec={"volumes": volumes or []})


def make_endpoint_slice(name: str, service: str, pods: list[str]) -> dict:
    return make_object(
        "discovery.k8s.io/v1",
        "EndpointSlice",
        name,
        labels={"kubernetes.io/service-name": service},
        owner=("v1", "Service", service),
        addressType="IPv4",
        endpoints=[
            {"addresses": [f"10.0.0.{i}"], "targetRef": {"kind": "Pod", "name": pod, "namespace": NS}}
            for i, pod in enumerate(pods, start=1)
        ],
    )


def _manifests() -> list[dict]:
    cart_labels = {"app": "cart"}
    cart_rs = ("apps/v1", "ReplicaSet", "cart-7c9d")
    volumes = [
        {"name": "config", "configMap": {"name": "cart-config"}},
        {"name": "creds", "secret": {"secretName": "cart-db"}},
        {"name": "data", "persistentVolumeClaim": {"claimName": "cart-data"}},
        {"name": "scratch", "emptyDir": {}},
    ]
    return [
        # Deployment -> ReplicaSet -> Pods, fronted by a Service
        make_object(
            "apps/v1",
            "Deployment",
            "cart",
            labels=cart_labels,
            spec={"selector": {"matchLabels": cart_labels}},
        ),
        make_object("apps/v1", "ReplicaSet", "cart-7c9d", labels=cart_labels, owner=("apps/v1", "Deployment", "cart")),
        make_object("apps/v1", "ReplicaSet", "cart-5b1a", labels=cart_labels, owner=("apps/v1", "Deployment", "cart")),
        make_pod("cart-7c9d-aaaaa", cart_rs, cart_labels, volumes),
        make_pod("cart-7c9d-bbbbb", cart_rs, cart_labels),
        make_object("v1", "Service", "cart", spec={"selector": cart_labels, "ports": [{"port": 80}]}),
        make_object("v1", "Service", "cart-headless", spec={"clusterIP": "None"}),
        make_endpoint_slice("cart-x1y2z", "cart", ["cart-7c9d-aaaaa", "cart-7c9d-bbbbb"]),
        make_endpoint_slice("search-q9w8e", "search", ["search-1"]),
        make_object("v1", "ConfigMap", "cart-config"),
        make_object("v1", "Secret", "cart-db"),
        make_object("v1", "PersistentVolumeClaim", "cart-data"),
        # Ingress routing to two Services
        make_object(
            "networking.k8s.io/v1",
            "Ingress",
            "storefront",
            spec={
                "rules": [
                    {
                        "host": "shop.example.com",
                        "http": {
                            "paths": [
                                {"path": "/cart", "backend": {"service": {"name": "cart", "port": {"number": 80}}}},
                                {"path": "/search", "backend": {"service": {"name": "search", "port": {"number": 80}}}},
                                {"path": "/cart/v2", "backend": {"service": {"name": "cart", "port": {"number": 80}}}},
                            ]
                        },
                    },
                    {"host": "static.example.com"},
                ]
            },
        ),
        # CronJob -> Job -> Pod
        make_object("batch/v1", "CronJob", "nightly-report", spec={"schedule": "0 2 * * *"}),
        make_object("batch/v1", "Job", "nightly-report-2891", owner=("batch/v1", "CronJob", "nightly-report")),
        make_pod("nightly-report-2891-x", ("batch/v1", "Job", "nightly-report-2891"), {"job": "nightly"}),
        # StatefulSet -> Pods + ControllerRevision
        make_object("apps/v1", "StatefulSet", "redis", labels={"app": "redis"}),
        make_pod("redis-0", ("apps/v1", "StatefulSet", "redis"), {"app": "redis"}),
        make_object("apps/v1", "ControllerRevision", "redis-6f7d", owner=("apps/v1", "StatefulSet", "redis")),
        # Objects in another namespace must never leak into shop queries
        make_object("apps/v1", "ReplicaSet", "cart-7c9d", namespace="staging", owner=("apps/v1", "Deployment", "cart")),
    ]


@pytest.fixture
def store() -> InMemoryResourceStore:
    return InMemoryResourceStore(_manifests())


@pytest.fixture
def topology(store: InMemoryResourceStore) -> ResourceTopology:
    return ResourceTopology(load_rule_template(), store)
