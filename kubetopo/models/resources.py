"""Resource identity and topology tree data structures."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class ResourceRef:
    """Identity of a Kubernetes object.

    Equality and hashing cover all four fields, so refs can be used as set
    members and dict keys. ``group`` is empty for the core API group.
    """

    group: str
    kind: str
    name: str = ""
    namespace: str = ""

    @property
    def group_kind(self) -> str:
        """Return the ``group/kind`` key used to look up rules."""
        return f"{self.group}/{self.kind}"

    def to_dict(self) -> dict[str, str]:
        return {
            "group": self.group,
            "kind": self.kind,
            "name": self.name,
            "namespace": self.namespace,
        }

    def __str__(self) -> str:
        prefix = f"{self.kind}.{self.group}" if self.group else self.kind
        if self.namespace:
            return f"{prefix}/{self.namespace}/{self.name}"
        return f"{prefix}/{self.name}"


@dataclass
class SubResource:
    """A node of a sub-resource tree.

    Children are kept in discovery order: declaration order first, then the
    order in which the store returned items.
    """

    resource: ResourceRef
    children: list[SubResource] = field(default_factory=list)

    def walk(self) -> list[ResourceRef]:
        """Return this node's descendants (excluding itself) depth-first."""
        result: list[ResourceRef] = []
        for child in self.children:
            result.append(child.resource)
            result.extend(child.walk())
        return result

    def to_dict(self) -> dict[str, object]:
        return {
            **self.resource.to_dict(),
            "children": [child.to_dict() for child in self.children],
        }


@dataclass(frozen=True)
class OwnerReference:
    """The subset of ``metadata.ownerReferences[]`` the engine reads."""

    kind: str
    name: str
    api_version: str = ""
    uid: str = ""


@dataclass
class ListedItem:
    """An object returned by a store list call."""

    name: str
    namespace: str
    labels: dict[str, str] = field(default_factory=dict)
    annotations: dict[str, str] = field(default_factory=dict)
    owner_references: list[OwnerReference] = field(default_factory=list)

    def is_owned_by(self, owner: ResourceRef) -> bool:
        return any(ref.name == owner.name and ref.kind == owner.kind for ref in self.owner_references)


@dataclass(frozen=True)
class EndpointTarget:
    """``endpoints[].targetRef`` of a discovery.k8s.io/v1 EndpointSlice."""

    kind: str
    name: str
    namespace: str


@dataclass
class EndpointSlice:
    """The parts of an EndpointSlice the service builtin needs."""

    name: str
    namespace: str
    owner_references: list[OwnerReference] = field(default_factory=list)
    targets: list[EndpointTarget | None] = field(default_factory=list)
