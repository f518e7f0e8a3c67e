"""kubetopo: rule-driven sub-resource and peer-resource discovery for Kubernetes."""

__version__ = "0.1.0"
